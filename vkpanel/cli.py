"""
CLI entry point for vkpanel.

Commands:
  vkpanel          - Open the control panel (same as 'vkpanel gui')
  vkpanel gui      - Open the control panel
  vkpanel run      - Toggle dictation on the hotkey without a window
  vkpanel setup    - Configure API key, project and hotkey
  vkpanel status   - Show current configuration
  vkpanel balance  - Show the Deepgram project balance
"""

from pathlib import Path
from typing import Optional

import click

from vkpanel import __version__
from vkpanel.config import Config
from vkpanel.environment import snapshot
from vkpanel.logs import configure_logging


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="vkpanel")
@click.option("--verbose", "-v", is_flag=True, help="Log debug messages to stderr")
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path),
              help="Write the log to this file instead of the default")
@click.pass_context
def main(ctx: click.Context, verbose: bool, log_file: Optional[Path]):
    """vkpanel - Control panel for voice-keyboard dictation.

    Press the hotkey (F13 by default) or the Start button to launch the
    dictation worker; press again to stop it.
    """
    configure_logging(log_file, verbose=verbose)
    if ctx.invoked_subcommand is None:
        ctx.invoke(gui)


@main.command()
@click.option("--no-hotkey", is_flag=True, help="Do not listen for the global hotkey")
def gui(no_hotkey: bool):
    """Open the control panel window."""
    from vkpanel.panel import ControlPanel

    ControlPanel(use_hotkey=not no_hotkey).run()


@main.command()
def run():
    """Toggle dictation on the hotkey without opening a window."""
    from vkpanel.daemon import DaemonProcess
    from vkpanel.hotkey import HotkeyError

    config = Config.load()
    errors = config.validate(snapshot())

    if errors:
        click.echo(click.style("Cannot start - configuration issues:", fg="red"))
        for error in errors:
            click.echo(f"  ⚠ {error}")
        raise SystemExit(1)

    click.echo(click.style(f"Press {config.hotkey_code} to start/stop dictation", fg="green"))
    click.echo("Press Ctrl+C to quit")

    try:
        DaemonProcess(config=config).run()
    except HotkeyError as e:
        click.echo(click.style(f"✗ {e}", fg="red"))
        raise SystemExit(1)


@main.command()
@click.option("--api-key", prompt="Deepgram API Key", hide_input=True,
              help="Your Deepgram API key")
@click.option("--project-id", default="", help="Deepgram project ID (for balance checks)")
@click.option("--hotkey", default=None, help="Hotkey code, e.g. F13")
def setup(api_key: str, project_id: str, hotkey: Optional[str]):
    """Configure vkpanel with your API key and preferences."""
    config = Config.load()
    config.api_key = api_key.strip()
    if project_id:
        config.project_id = project_id.strip()
    if hotkey:
        config.hotkey_code = hotkey.strip()
    config.save()

    click.echo(click.style("✓ ", fg="green") + "Configuration saved!")
    click.echo(f"  Config file: {Config.get_config_path()}")

    errors = config.validate(snapshot())
    for error in errors:
        click.echo(click.style(f"  ⚠ {error}", fg="yellow"))


@main.command()
def status():
    """Show current configuration."""
    from vkpanel.process import PathResolutionError, resolve_worker_path

    env = snapshot()
    config = Config.load()
    errors = config.validate(env)

    click.echo(click.style("vkpanel Status", bold=True))
    click.echo("─" * 30)
    click.echo(f"Config: {Config.get_config_path()}")

    api_key = config.resolve_api_key(env)
    if api_key:
        source = "config" if config.api_key else "environment"
        masked_key = api_key[:4] + "..." + api_key[-4:] if len(api_key) > 8 else "****"
        click.echo(f"API Key: {masked_key} ({source})")
    else:
        click.echo(click.style("API Key: Not set", fg="yellow"))

    click.echo(f"Project ID: {config.project_id or '-'}")
    click.echo(f"Hotkey: {config.hotkey_code}")
    click.echo(f"Privilege helper: {config.privilege_helper}")

    try:
        worker = resolve_worker_path()
        state = "found" if worker.exists() else "missing"
        click.echo(f"Worker: {worker} ({state})")
    except PathResolutionError as e:
        click.echo(click.style(f"Worker: {e}", fg="yellow"))

    click.echo()
    if errors:
        click.echo(click.style("Issues:", fg="yellow"))
        for error in errors:
            click.echo(f"  ⚠ {error}")
    else:
        click.echo(click.style("✓ Ready to use", fg="green"))


@main.command()
def balance():
    """Show the Deepgram project balance."""
    from vkpanel.billing import BillingClient, BillingError, format_balances

    config = Config.load()
    try:
        balances = BillingClient(config.resolve_api_key(snapshot())).get_balances(config.project_id)
    except BillingError as e:
        click.echo(click.style(f"✗ {e}", fg="red"))
        raise SystemExit(1)

    click.echo(format_balances(balances))


if __name__ == "__main__":
    main()
