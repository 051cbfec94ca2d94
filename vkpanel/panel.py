"""
GTK control panel for vkpanel.

Edits the configuration, starts/stops dictation with a button and shows the
controller's status and the project's billing balance.
"""

import queue
import threading
from typing import Callable, Optional

import gi
gi.require_version('Gtk', '3.0')
from gi.repository import Gtk, GLib
from loguru import logger

from vkpanel.billing import BillingClient, BillingError, format_balances
from vkpanel.config import Config
from vkpanel.controller import DictationController
from vkpanel.hotkey import HotkeyError, HotkeyListener
from vkpanel.session import SessionState


CSS = b"""
    .title { font-size: 24px; font-weight: bold; }
    .section { font-size: 18px; font-weight: bold; }
    .start { background-image: none; background-color: #27ae60; color: #ffffff; }
    .stop { background-image: none; background-color: #e74c3c; color: #ffffff; }
    .status { font-size: 15px; }
"""


class ControlPanel:
    """
    Main window. The toggle button is the second trigger source next to the
    global hotkey; its requests are handed to a worker thread so the GTK loop
    never waits on the worker process.

    Usage:
        panel = ControlPanel()
        panel.run()  # Blocks until the window is closed
    """

    def __init__(self, config: Optional[Config] = None, use_hotkey: bool = True):
        self.config = config or Config.load()
        self.controller = DictationController(
            config=self.config,
            on_status_change=self._on_status_change,
            on_state_change=self._on_state_change,
        )
        self._use_hotkey = use_hotkey
        self._hotkey_listener: Optional[HotkeyListener] = None
        self._requests: "queue.Queue[Optional[Callable[[], object]]]" = queue.Queue()
        self._worker = threading.Thread(target=self._process_requests, name="vkpanel-ui", daemon=True)
        self._build()

    # ---- Layout ----
    def _build(self) -> None:
        provider = Gtk.CssProvider()
        provider.load_from_data(CSS)

        self._window = Gtk.Window(title="Voice Keyboard")
        self._window.set_default_size(500, 600)
        self._window.set_position(Gtk.WindowPosition.CENTER)
        self._window.connect("destroy", self._on_destroy)
        Gtk.StyleContext.add_provider_for_screen(
            self._window.get_screen(),
            provider,
            Gtk.STYLE_PROVIDER_PRIORITY_APPLICATION,
        )

        box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=6)
        box.set_border_width(20)
        self._window.add(box)

        title = Gtk.Label(label="Voice Keyboard Control")
        title.get_style_context().add_class("title")
        box.pack_start(title, False, False, 10)

        self._api_key_entry = self._add_field(box, "Deepgram API Key:", self.config.api_key)
        self._api_key_entry.set_visibility(False)
        self._api_key_entry.set_placeholder_text("Enter your Deepgram API key")
        self._project_id_entry = self._add_field(box, "Deepgram Project ID:", self.config.project_id)
        self._project_id_entry.set_placeholder_text("Enter your project ID")
        self._hotkey_entry = self._add_field(box, "Hotkey (e.g., F13):", self.config.hotkey_code)

        save_button = Gtk.Button(label="Save Configuration")
        save_button.connect("clicked", self._on_save)
        box.pack_start(save_button, False, False, 10)

        self._toggle_button = Gtk.Button()
        self._toggle_button.connect("clicked", self._on_toggle)
        box.pack_start(self._toggle_button, False, False, 10)

        self._status_label = Gtk.Label(label=self.controller.status)
        self._status_label.get_style_context().add_class("status")
        self._status_label.set_line_wrap(True)
        box.pack_start(self._status_label, False, False, 10)

        billing_title = Gtk.Label(label="Billing Information")
        billing_title.get_style_context().add_class("section")
        box.pack_start(billing_title, False, False, 10)

        self._balance_button = Gtk.Button(label="Check Balance")
        self._balance_button.connect("clicked", self._on_check_balance)
        box.pack_start(self._balance_button, False, False, 0)

        self._balance_label = Gtk.Label(label="Click 'Check Balance' to view billing info")
        box.pack_start(self._balance_label, False, False, 10)

        self._apply_state(self.controller.state)

    def _add_field(self, box: Gtk.Box, label: str, value: str) -> Gtk.Entry:
        caption = Gtk.Label(label=label, xalign=0)
        entry = Gtk.Entry()
        entry.set_text(value)
        box.pack_start(caption, False, False, 0)
        box.pack_start(entry, False, False, 0)
        return entry

    # ---- Controller callbacks (any thread) ----
    def _on_status_change(self, status: str) -> None:
        GLib.idle_add(self._apply_status, status)

    def _on_state_change(self, state: SessionState) -> None:
        GLib.idle_add(self._apply_state, state)

    def _apply_status(self, status: str) -> bool:
        self._status_label.set_text(status)
        return False

    def _apply_state(self, state: SessionState) -> bool:
        context = self._toggle_button.get_style_context()
        if state is SessionState.RECORDING:
            self._toggle_button.set_label("Stop Dictation")
            context.remove_class("start")
            context.add_class("stop")
        else:
            self._toggle_button.set_label("Start Dictation")
            context.remove_class("stop")
            context.add_class("start")
        return False

    # ---- Worker thread ----
    def _process_requests(self) -> None:
        """Run queued controller calls one at a time, in click order."""
        while True:
            request = self._requests.get()
            if request is None:
                break
            request()

    # ---- Signal handlers (GTK thread) ----
    def _on_toggle(self, button: Gtk.Button) -> None:
        self._requests.put(self.controller.toggle)

    def _on_save(self, button: Gtk.Button) -> None:
        old_hotkey = self.config.hotkey_code
        self.config.api_key = self._api_key_entry.get_text().strip()
        self.config.project_id = self._project_id_entry.get_text().strip()
        self.config.hotkey_code = self._hotkey_entry.get_text().strip() or old_hotkey

        try:
            self.config.save()
        except (OSError, ValueError) as e:
            logger.error(f"Failed to save config: {e}")
            self._apply_status(f"Failed to save config: {e}")
            return

        logger.info(f"Configuration saved to {Config.get_config_path()}")
        if self.config.hotkey_code != old_hotkey:
            self._apply_status("Configuration saved! Restart to use the new hotkey.")
        else:
            self._apply_status("Configuration saved!")

    def _on_check_balance(self, button: Gtk.Button) -> None:
        self._balance_button.set_sensitive(False)
        self._balance_label.set_text("Checking balance...")
        api_key = self.config.resolve_api_key(self.controller.environment)
        project_id = self.config.project_id

        def _fetch() -> None:
            try:
                text = format_balances(BillingClient(api_key).get_balances(project_id))
            except BillingError as e:
                logger.warning(f"Balance check failed: {e}")
                text = f"Error: {e}"
            GLib.idle_add(self._show_balance, text)

        threading.Thread(target=_fetch, daemon=True).start()

    def _show_balance(self, text: str) -> bool:
        self._balance_label.set_text(text)
        self._balance_button.set_sensitive(True)
        return False

    def _on_destroy(self, window: Gtk.Window) -> None:
        self.close()
        Gtk.main_quit()

    # ---- Lifecycle ----
    def _start_hotkey(self) -> None:
        self._hotkey_listener = HotkeyListener(
            on_trigger=self.controller.toggle,
            key=self.config.hotkey_code,
        )
        try:
            self._hotkey_listener.start()
        except HotkeyError as e:
            logger.warning(f"Global hotkey disabled: {e}")
            self._hotkey_listener = None

    def close(self) -> None:
        """Stop both trigger sources, then terminate any running worker."""
        if self._hotkey_listener:
            self._hotkey_listener.stop()
            self._hotkey_listener = None
        self._requests.put(None)
        if self._worker.is_alive() and self._worker is not threading.current_thread():
            self._worker.join()
        self.controller.shutdown()

    def run(self) -> None:
        """Show the window and run the GTK main loop."""
        if self._use_hotkey:
            self._start_hotkey()
        self._worker.start()
        self._window.show_all()
        try:
            Gtk.main()
        finally:
            self.close()
