"""Shared fakes for capgit tests: a scripted completion service, an in-memory git repo and a capturing context."""

import datetime as dt
import json
from typing import Any, Dict, List, Optional

import pytest

from capgit.context import Context
from capgit.errors import CompletionCancelled, NothingToCommitError
from capgit.git import CommitInfo, GitStatus
from capgit.models import Choice
from capgit.tools import Toolbox


NOW = dt.datetime(2024, 5, 1, 9, 30, 15)


def tool_call(tc_id: str, name: str, arguments: Any = None) -> Dict[str, Any]:
    args = arguments if isinstance(arguments, str) else json.dumps(arguments or {})
    return {"id": tc_id, "type": "function", "function": {"name": name, "arguments": args}}


def choice(content: Optional[str] = None, tool_calls: Optional[List[Dict[str, Any]]] = None) -> Choice:
    message: Dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    return Choice.model_validate({"index": 0, "message": message, "finish_reason": "stop"})


class CapturingContext(Context):
    def __init__(self) -> None:
        super().__init__(verbose=True)
        self.sent: List[str] = []
        self.logs: List[str] = []
        self.errors: List[str] = []

    def send_to_user(self, message: str) -> None:
        self.sent.append(message)

    def log(self, message: str) -> None:
        self.logs.append(message)

    def error_message(self, message: str) -> None:
        self.errors.append(message)


class ScriptedClient:
    """Returns one scripted reply per request; a reply may be an exception to raise."""

    def __init__(self, replies: List[Any]) -> None:
        self.replies = list(replies)
        self.requests: List[Dict[str, Any]] = []

    def create_completion(self, messages, tools, temperature, cancel=None):
        if cancel is not None:
            cancel.raise_if_cancelled()
        self.requests.append({"messages": messages, "tools": tools, "temperature": temperature})
        if not self.replies:
            raise AssertionError("completion requested more times than scripted")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


class FakeRepo:
    def __init__(self, files: Optional[List[str]] = None) -> None:
        self.branch = "refs/heads/main"
        self.modified = list(files or [])
        self.staged: List[str] = []
        self.commits: List[str] = []

    def status(self, include_untracked: bool = True) -> GitStatus:
        return GitStatus(branch=self.branch, staged=list(self.staged), modified=list(self.modified))

    def stage(self, patterns):
        for p in patterns:
            if p in self.modified:
                self.modified.remove(p)
                self.staged.append(p)
        return self.status(include_untracked=False)

    def unstage(self, patterns):
        for p in patterns:
            if p in self.staged:
                self.staged.remove(p)
                self.modified.append(p)
        return self.status(include_untracked=False)

    def commit(self, message: str) -> CommitInfo:
        if not self.staged:
            raise NothingToCommitError("nothing is staged for commit")
        self.commits.append(message)
        self.staged = []
        return CommitInfo(sha="abc123", author="Ada")


@pytest.fixture
def ctx() -> CapturingContext:
    return CapturingContext()


@pytest.fixture
def repo() -> FakeRepo:
    return FakeRepo(["README.md", "src/app.py"])


@pytest.fixture
def toolbox(ctx, repo) -> Toolbox:
    return Toolbox(ctx=ctx, repo=repo)


@pytest.fixture
def cancelled() -> CompletionCancelled:
    return CompletionCancelled("cancelled by user")
