# capgit: Filesystem helpers for the application-data directory and atomic JSON writes.

import json
import os
import pathlib
import sys
from typing import Any, Optional

from .config import CAPGIT_HOME

APP_DIR_NAME = "CapGit"
CHAT_LOG_FILENAME = "chatlog.json"


def app_data_dir(home: Optional[str] = None) -> pathlib.Path:
    """
    Return the per-user application data directory for capgit.

    CAPGIT_HOME wins when set; otherwise %APPDATA% on Windows and
    $XDG_CONFIG_HOME (or ~/.config) elsewhere, joined with "CapGit".
    """
    override = CAPGIT_HOME if home is None else home
    if override:
        return pathlib.Path(override).expanduser()
    if sys.platform.startswith("win") and os.environ.get("APPDATA"):
        base = pathlib.Path(os.environ["APPDATA"])
    else:
        base = pathlib.Path(os.environ.get("XDG_CONFIG_HOME") or pathlib.Path.home() / ".config")
    return base / APP_DIR_NAME


def chat_log_path(app_dir: Optional[pathlib.Path] = None) -> pathlib.Path:
    """Return the fixed location of the persisted chat log."""
    return (app_dir or app_data_dir()) / CHAT_LOG_FILENAME


def write_json(path: pathlib.Path, obj: Any) -> None:
    """Atomically write a JSON object to path (UTF-8, pretty-printed)."""
    tmp = path.with_suffix(path.suffix + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, ensure_ascii=False)
        f.flush()
        os.fsync(f.fileno())
    tmp.replace(path)


def remove_file(path: pathlib.Path) -> bool:
    """Delete path if present. Returns True when a file was removed; a missing file or directory is not an error."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True
