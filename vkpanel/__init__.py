"""
vkpanel - Desktop control panel for the voice-keyboard dictation worker

Toggles the privileged speech-to-text worker on a global hotkey or a button,
plays audible start/stop cues, and keeps the API key and hotkey in a small
config file.
"""

__version__ = "0.1.0"
__app_name__ = "vkpanel"
