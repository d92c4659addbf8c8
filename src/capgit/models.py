# capgit: Centralized Pydantic v2 models for the conversation transcript and the Chat Completions wire format.
# Persisted messages forbid unknown fields; service replies ignore them because the API adds fields over time.

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CustomBaseModel(BaseModel):
    """Pydantic base model configured to forbid unknown fields for strict validation."""
    model_config = ConfigDict(extra="forbid")


class ReplyModel(BaseModel):
    """Base for models parsed from the completion service; unknown fields are dropped."""
    model_config = ConfigDict(extra="ignore")


class Role(str, Enum):
    system = "system"
    user = "user"
    assistant = "assistant"
    tool = "tool"


class FunctionCall(CustomBaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., description="Name of the tool the model wants to run")
    arguments: str = Field("{}", description="Raw JSON object with the call's arguments")

    @field_validator("arguments", mode="before")
    @classmethod
    def _arguments_as_text(cls, v: Any) -> str:
        # Some providers send the arguments already decoded.
        if v is None:
            return "{}"
        if isinstance(v, str):
            return v
        return json.dumps(v, ensure_ascii=False)


class ToolCall(CustomBaseModel):
    """A request from the model to execute a named capability."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(..., description="Opaque id, unique within the emitting assistant message")
    type: Literal["function"] = "function"
    function: FunctionCall

    @property
    def name(self) -> str:
        return self.function.name

    def parse_arguments(self) -> Dict[str, Any]:
        """
        Decode the raw argument text into a dict.

        Raises ValueError when the text is not JSON or not a JSON object; an
        empty string is treated as no arguments.
        """
        text = self.function.arguments.strip()
        if not text:
            return {}
        parsed = json.loads(text)
        if not isinstance(parsed, dict):
            raise ValueError("arguments must be a JSON object")
        return parsed


class Message(CustomBaseModel):
    """One conversation turn, serialized exactly as sent to the completion service."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    role: Role
    content: Optional[str] = None
    tool_calls: Optional[Tuple[ToolCall, ...]] = None
    tool_call_id: Optional[str] = None

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.system, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.user, content=content)

    @classmethod
    def assistant(cls, content: Optional[str], tool_calls: Optional[Sequence[ToolCall]] = None) -> "Message":
        """Build an assistant message; content is never null and an empty call list is dropped."""
        return cls(role=Role.assistant, content=content or "", tool_calls=tuple(tool_calls) if tool_calls else None)

    @classmethod
    def tool(cls, content: str, tool_call_id: str) -> "Message":
        return cls(role=Role.tool, content=content, tool_call_id=tool_call_id)

    def to_wire(self) -> Dict[str, Any]:
        """Return the JSON-ready dict used both on disk and in completion requests."""
        return self.model_dump(mode="json", exclude_none=True)


# -----------------------------
# Completion service replies
# -----------------------------


class ReplyFunctionCall(ReplyModel):
    name: str
    arguments: Any = "{}"


class ReplyToolCall(ReplyModel):
    id: str
    type: str = "function"
    function: ReplyFunctionCall

    def to_tool_call(self) -> ToolCall:
        return ToolCall(id=self.id, function=FunctionCall(name=self.function.name, arguments=self.function.arguments))


class AssistantReply(ReplyModel):
    role: str = "assistant"
    content: Optional[str] = None
    tool_calls: Optional[List[ReplyToolCall]] = None

    def to_message(self) -> Message:
        calls = [tc.to_tool_call() for tc in (self.tool_calls or [])]
        return Message.assistant(self.content, calls)


class Choice(ReplyModel):
    index: int = 0
    message: AssistantReply
    finish_reason: Optional[str] = None


class Usage(ReplyModel):
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class ChatCompletion(ReplyModel):
    id: Optional[str] = None
    model: Optional[str] = None
    choices: List[Choice] = Field(default_factory=list)
    usage: Optional[Usage] = None
