"""
System clipboard access for Clipnote.

Reads the clipboard through wl-paste (Wayland) or xclip (X11).
Images win over text when the clipboard offers both.
"""

import shutil
import subprocess

from clipnote.errors import ClipboardUnavailableError
from clipnote.models import ImageInput, RawInput, TextInput

TIMEOUT_SECONDS = 5


def _wl_paste_commands() -> dict[str, list[str]]:
    return {
        "types": ["wl-paste", "--list-types"],
        "data": ["wl-paste", "--no-newline", "--type"],
        "text": ["wl-paste", "--no-newline"],
    }


def _xclip_commands() -> dict[str, list[str]]:
    return {
        "types": ["xclip", "-selection", "clipboard", "-t", "TARGETS", "-o"],
        "data": ["xclip", "-selection", "clipboard", "-o", "-t"],
        "text": ["xclip", "-selection", "clipboard", "-o"],
    }


BACKENDS = {
    "wl-paste": _wl_paste_commands,
    "xclip": _xclip_commands,
}


def find_backend() -> str | None:
    """Name of the first available clipboard tool, if any."""
    for name in BACKENDS:
        if shutil.which(name):
            return name
    return None


def _run(cmd: list[str]) -> bytes:
    try:
        result = subprocess.run(cmd, capture_output=True, timeout=TIMEOUT_SECONDS, check=True)
    except (OSError, subprocess.SubprocessError) as e:
        raise ClipboardUnavailableError(f"Could not read the clipboard ({cmd[0]}: {e}).") from e
    return result.stdout


def read_clipboard(backend: str | None = None) -> RawInput:
    """
    Read the clipboard as raw input.

    Raises ClipboardUnavailableError if no clipboard tool is installed or the
    tool fails. Blank text is returned as-is; triage rejects it.
    """
    backend = backend or find_backend()
    if backend not in BACKENDS:
        raise ClipboardUnavailableError("No clipboard tool found (install wl-clipboard or xclip).")

    commands = BACKENDS[backend]()

    types = _run(commands["types"]).decode("utf-8", errors="replace").split()
    for mime_type in types:
        if mime_type.startswith("image/"):
            blob = _run(commands["data"] + [mime_type])
            if blob:
                return ImageInput(blob=blob, mime_type=mime_type)

    text = _run(commands["text"]).decode("utf-8", errors="replace")
    return TextInput(value=text)
