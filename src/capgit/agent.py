# capgit: The agent turn loop. One user instruction becomes rounds of completion request -> tool execution
# until the model answers without tool calls, or the user cancels the in-flight request.

import pathlib
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict

from .chatlog import ChatLog, delete_chat_log, save_chat_log
from .client import CancelToken
from .config import MAX_ROUNDS, TEMPERATURE
from .context import Context
from .errors import CompletionCancelled, RoundLimitExceeded
from .models import Choice, Message
from .tools import Toolbox, dispatch, tool_definitions


class CompletionClient(Protocol):
    def create_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]],
        temperature: float,
        cancel: Optional[CancelToken] = None,
    ) -> List[Choice]:
        ...


class TurnOutcome(str, Enum):
    DONE = "done"
    CANCELLED = "cancelled"


class TurnResult(BaseModel):
    """Final state of a turn: the transcript, how the turn ended, and whether history should be discarded."""

    model_config = ConfigDict(frozen=True)

    log: ChatLog
    outcome: TurnOutcome
    reset_requested: bool = False
    rounds: int = 0


class Agent:
    """
    Drives a single turn against the completion service.

    The agent keeps no per-turn state; everything a turn produces is returned in
    its TurnResult so callers decide persistence from that value alone.
    """

    def __init__(
        self,
        ctx: Context,
        client: CompletionClient,
        toolbox: Toolbox,
        temperature: float = TEMPERATURE,
        max_rounds: int = MAX_ROUNDS,
    ) -> None:
        self.ctx = ctx
        self.client = client
        self.toolbox = toolbox
        self.temperature = temperature
        self.max_rounds = max_rounds
        # The registry is read-only after import, so one advertisement serves every round.
        self.tools = tool_definitions()

    def run_turn(self, log: ChatLog, cancel: Optional[CancelToken] = None) -> TurnResult:
        """
        Run rounds until the model replies without tool calls.

        `log` must already end with the new user message. Each round appends one
        assistant message and, for each of its tool calls in order, one tool
        message carrying that call's id. A cancelled request ends the turn with
        the log as of the last completed round.

        Raises:
            CompletionError: the completion service failed; not retried.
            RoundLimitExceeded: only when max_rounds is non-zero.
        """
        reset_requested = False
        rounds = 0
        while True:
            if self.max_rounds and rounds >= self.max_rounds:
                raise RoundLimitExceeded(f"Model kept requesting tools after {rounds} rounds; aborting.")

            self.ctx.log(f"Round {rounds + 1}: sending {len(log)} message(s) with {len(self.tools)} tool(s)")
            try:
                choices = self.client.create_completion(log.to_wire(), self.tools, self.temperature, cancel)
            except CompletionCancelled:
                self.ctx.log(f"Turn cancelled after {rounds} completed round(s)")
                return TurnResult(log=log, outcome=TurnOutcome.CANCELLED, reset_requested=reset_requested, rounds=rounds)
            rounds += 1

            if not choices:
                self.ctx.log("Completion returned no choices; ending turn")
                break

            # Only the first candidate is used.
            reply = choices[0].message.to_message()
            log = log.append(reply)
            if reply.content:
                self.ctx.send_to_user(reply.content)
            if not reply.tool_calls:
                break

            for call in reply.tool_calls:
                result = dispatch(self.toolbox, call)
                reset_requested = reset_requested or result.restart_session
                log = log.append(Message.tool(result.content, call.id))

        self.ctx.log(f"Turn done after {rounds} round(s)")
        return TurnResult(log=log, outcome=TurnOutcome.DONE, reset_requested=reset_requested, rounds=rounds)


def settle_chat_log(result: TurnResult, path: pathlib.Path) -> None:
    """Persist the turn's transcript, or delete the whole log when a session reset was requested."""
    if result.reset_requested:
        delete_chat_log(path)
    else:
        save_chat_log(result.log, path)
