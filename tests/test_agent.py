"""Tests for capgit.agent"""

import pytest

from capgit.agent import Agent, TurnOutcome, settle_chat_log
from capgit.chatlog import load_chat_log, new_chat_log, save_chat_log
from capgit.client import CancelToken
from capgit.errors import CompletionError, RoundLimitExceeded
from capgit.models import Role

from conftest import NOW, ScriptedClient, choice, tool_call


def _start():
    return new_chat_log(NOW, host="h", user="u").add_user_message("commit my readme", NOW)


def _assert_pairing(log):
    msgs = log.messages
    for i, msg in enumerate(msgs):
        if msg.role is Role.assistant and msg.tool_calls:
            ids = [tc.id for tc in msg.tool_calls]
            following = msgs[i + 1 : i + 1 + len(ids)]
            assert [m.role for m in following] == [Role.tool] * len(ids)
            assert [m.tool_call_id for m in following] == ids


class TestRunTurn:

    def test_single_round_without_tools(self, ctx, toolbox):
        client = ScriptedClient([[choice("Nothing to do.")]])
        result = Agent(ctx, client, toolbox).run_turn(_start())
        assert result.outcome is TurnOutcome.DONE
        assert result.rounds == 1
        assert len(result.log) == 3
        assert result.log.messages[-1].content == "Nothing to do."
        assert ctx.sent == ["Nothing to do."]

    def test_tool_round_then_final_answer(self, ctx, toolbox):
        client = ScriptedClient([
            [choice(None, [tool_call("call_1", "GitStatus")])],
            [choice("You are on main.")],
        ])
        start = _start()
        result = Agent(ctx, client, toolbox).run_turn(start)
        assert len(client.requests) == 2
        assert result.outcome is TurnOutcome.DONE
        added = result.log.messages[len(start):]
        assert [m.role for m in added] == [Role.assistant, Role.tool, Role.assistant]
        assert added[0].content == ""
        assert added[1].tool_call_id == "call_1"
        assert added[1].content.startswith("Current branch: refs/heads/main")
        # Second request carries the tool result.
        assert client.requests[1]["messages"][-1]["role"] == "tool"
        assert ctx.sent == ["You are on main."]

    def test_every_request_carries_tools_and_temperature(self, ctx, toolbox):
        client = ScriptedClient([
            [choice(None, [tool_call("call_1", "GitStatus")])],
            [choice("ok")],
        ])
        Agent(ctx, client, toolbox, temperature=0.8).run_turn(_start())
        for req in client.requests:
            assert [t["function"]["name"] for t in req["tools"]] == [
                "RestartSession", "GitStatus", "GitStage", "GitUnstage", "GitCommit",
            ]
            assert req["temperature"] == 0.8

    def test_results_follow_call_order(self, ctx, toolbox, repo):
        client = ScriptedClient([
            [choice("Staging and committing.", [
                tool_call("a", "GitStage", {"files": ["README.md"]}),
                tool_call("b", "GitCommit", {"commitMessage": "Docs"}),
                tool_call("c", "Teleport"),
            ])],
            [choice("Committed.")],
        ])
        result = Agent(ctx, client, toolbox).run_turn(_start())
        _assert_pairing(result.log)
        tool_msgs = [m for m in result.log.messages if m.role is Role.tool]
        assert [m.tool_call_id for m in tool_msgs] == ["a", "b", "c"]
        assert tool_msgs[1].content == "Commit abc123 created for author Ada."
        assert tool_msgs[2].content == "Teleport could not be found."
        # Narration before acting is surfaced too.
        assert ctx.sent == ["Staging and committing.", "Committed."]

    def test_no_choices_ends_turn_without_mutation(self, ctx, toolbox):
        start = _start()
        result = Agent(ctx, client=ScriptedClient([[]]), toolbox=toolbox).run_turn(start)
        assert result.outcome is TurnOutcome.DONE
        assert result.log == start

    def test_only_first_choice_is_used(self, ctx, toolbox):
        client = ScriptedClient([[choice("first"), choice("second")]])
        result = Agent(ctx, client, toolbox).run_turn(_start())
        assert result.log.messages[-1].content == "first"
        assert ctx.sent == ["first"]

    def test_restart_flag_survives_later_rounds(self, ctx, toolbox):
        client = ScriptedClient([
            [choice(None, [tool_call("r", "RestartSession")])],
            [choice(None, [tool_call("s", "GitStatus")])],
            [choice("Fresh start.")],
        ])
        result = Agent(ctx, client, toolbox).run_turn(_start())
        assert result.reset_requested is True
        assert result.rounds == 3

    def test_input_log_is_not_mutated(self, ctx, toolbox):
        start = _start()
        client = ScriptedClient([[choice(None, [tool_call("x", "GitStatus")])], [choice("done")]])
        Agent(ctx, client, toolbox).run_turn(start)
        assert len(start) == 2

    def test_cancellation_keeps_completed_rounds(self, ctx, toolbox, cancelled):
        client = ScriptedClient([
            [choice(None, [tool_call("call_1", "GitStatus")])],
            cancelled,
        ])
        start = _start()
        result = Agent(ctx, client, toolbox).run_turn(start)
        assert result.outcome is TurnOutcome.CANCELLED
        assert result.rounds == 1
        assert [m.role for m in result.log.messages[len(start):]] == [Role.assistant, Role.tool]

    def test_cancel_token_set_before_request(self, ctx, toolbox):
        token = CancelToken()
        token.cancel()
        client = ScriptedClient([[choice("never")]])
        start = _start()
        result = Agent(ctx, client, toolbox).run_turn(start, token)
        assert result.outcome is TurnOutcome.CANCELLED
        assert result.log == start
        assert client.requests == []

    def test_transport_errors_propagate(self, ctx, toolbox):
        client = ScriptedClient([CompletionError("Chat Completions API error 500: boom")])
        with pytest.raises(CompletionError):
            Agent(ctx, client, toolbox).run_turn(_start())

    def test_round_cap_when_configured(self, ctx, toolbox):
        looping = [[choice(None, [tool_call(str(i), "GitStatus")])] for i in range(5)]
        agent = Agent(ctx, ScriptedClient(looping), toolbox, max_rounds=3)
        with pytest.raises(RoundLimitExceeded):
            agent.run_turn(_start())

    def test_long_tool_chains_are_iterative(self, ctx, toolbox):
        replies = [[choice(None, [tool_call(str(i), "GitStatus")])] for i in range(60)]
        replies.append([choice("done")])
        result = Agent(ctx, ScriptedClient(replies), toolbox).run_turn(_start())
        assert result.rounds == 61
        _assert_pairing(result.log)


class TestSettle:

    def test_saves_when_no_reset(self, ctx, toolbox, tmp_path):
        path = tmp_path / "chatlog.json"
        result = Agent(ctx, ScriptedClient([[choice("hi")]]), toolbox).run_turn(_start())
        settle_chat_log(result, path)
        assert load_chat_log(path, NOW).to_wire() == result.log.to_wire()

    def test_reset_deletes_instead_of_saving(self, ctx, toolbox, tmp_path):
        path = tmp_path / "chatlog.json"
        save_chat_log(_start(), path)
        client = ScriptedClient([
            [choice(None, [tool_call("r", "RestartSession")])],
            [choice("History cleared.")],
        ])
        result = Agent(ctx, client, toolbox).run_turn(_start())
        settle_chat_log(result, path)
        assert not path.exists()
