# capgit: The conversation transcript as an immutable value plus its single-file JSON persistence.
# Every mutation returns a new ChatLog; the orchestrator threads the latest value through a turn.

from __future__ import annotations

import datetime as dt
import getpass
import os
import pathlib
import socket
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from .errors import ChatLogError
from .fs import remove_file, write_json
from .models import Message
from .prompts import get_prompt

_MESSAGES = TypeAdapter(List[Message])


def format_timestamp(now: dt.datetime) -> str:
    """Return `now` as ISO 8601 local time with second precision (no offset)."""
    if now.tzinfo is not None:
        now = now.astimezone()
    return now.strftime("%Y-%m-%dT%H:%M:%S")


class ChatLog(BaseModel):
    """Ordered, append-only conversation transcript. Insertion order is the literal transcript order."""

    model_config = ConfigDict(frozen=True)

    messages: Tuple[Message, ...] = ()

    def __len__(self) -> int:
        return len(self.messages)

    def append(self, message: Message) -> "ChatLog":
        """Return a new log with `message` appended verbatim."""
        return ChatLog(messages=self.messages + (message,))

    def add_user_message(self, text: str, now: Optional[dt.datetime] = None) -> "ChatLog":
        """Return a new log with a user message prefixed by its send time, e.g. `[2024-05-01T09:30:00]: hi`."""
        stamp = format_timestamp(now or dt.datetime.now())
        return self.append(Message.user(f"[{stamp}]: {text}"))

    def to_wire(self) -> List[Dict[str, Any]]:
        """Return the messages as JSON-ready dicts, in order."""
        return [m.to_wire() for m in self.messages]


def _user_name() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return os.environ.get("USERNAME") or os.environ.get("USER") or "unknown"


def new_chat_log(now: Optional[dt.datetime] = None, host: Optional[str] = None, user: Optional[str] = None) -> ChatLog:
    """
    Bootstrap a log holding a single system message.

    The prompt names the host and user, states the current local date and time,
    and tells the model that user messages begin with their send timestamp.
    """
    now = now or dt.datetime.now()
    if now.tzinfo is not None:
        now = now.astimezone()
    prompt = get_prompt(
        "system_prompt.txt",
        host=host or socket.gethostname(),
        user=user or _user_name(),
        date=now.strftime("%Y-%m-%d"),
        time=now.strftime("%H:%M"),
    )
    return ChatLog(messages=(Message.system(prompt),))


def load_chat_log(path: pathlib.Path, now: Optional[dt.datetime] = None) -> ChatLog:
    """
    Load the persisted log at `path`, bootstrapping a fresh one when there is nothing to read.

    The parent directory is created as a side effect. A missing or empty file
    yields a new single-system-message log; anything else that fails to parse
    raises ChatLogError.
    """
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        return new_chat_log(now)
    if not raw.strip():
        return new_chat_log(now)
    try:
        messages = _MESSAGES.validate_json(raw)
    except ValidationError as e:
        raise ChatLogError(f"Chat log {path} is corrupt; run with --reset to start over. {e}") from e
    return ChatLog(messages=tuple(messages))


def save_chat_log(log: ChatLog, path: pathlib.Path) -> None:
    """Persist the full transcript, pretty-printed, replacing any previous content atomically."""
    write_json(pathlib.Path(path), log.to_wire())


def delete_chat_log(path: pathlib.Path) -> None:
    """Remove the persisted log; absence of the file or its directory is not an error."""
    path = pathlib.Path(path)
    remove_file(path)
    remove_file(path.with_suffix(path.suffix + ".tmp"))
