# capgit: CLI entrypoint. Handles --help and --reset, otherwise runs one agent turn for the joined arguments.

import pathlib
import signal
import sys
from typing import List, Optional

from . import __version__
from .agent import Agent, TurnOutcome, settle_chat_log
from .chatlog import delete_chat_log, load_chat_log
from .client import CancelToken, ChatCompletionsClient
from .context import Context
from .errors import CapGitError
from .fs import app_data_dir, chat_log_path
from .git import GitRepository
from .settings import load_settings, run_settings
from .tools import Toolbox

USAGE = """Usage: capgit <options> [message]
Options:
  --help    Shows this help screen
  --reset   Resets the chat session. Use this if the assistant refuses to respond, or execute commands.
Environment:
  OPENAI_API_KEY, AI_MODEL, OPENAI_BASE_URL, CAPGIT_HOME, CAPGIT_VERBOSE, CAPGIT_HTTP_LOG_DIR"""


def build_agent(ctx: Context, app_dir: pathlib.Path, repo_root: pathlib.Path) -> Agent:
    """Wire the completion client, git repository and settings into an Agent."""
    settings = load_settings(app_dir)
    options = run_settings(settings)
    client = ChatCompletionsClient(ctx, settings=settings)
    toolbox = Toolbox(ctx=ctx, repo=GitRepository(repo_root))
    return Agent(ctx, client, toolbox, temperature=options.temperature, max_rounds=options.max_rounds)


def _install_interrupt_handler(cancel: CancelToken):
    """Route Ctrl+C to the cancel token; returns the previous handler."""
    return signal.signal(signal.SIGINT, lambda signum, frame: cancel.cancel())


def main(argv: Optional[List[str]] = None) -> int:
    """
    capgit CLI entrypoint.

    Usage:
        capgit --help
        capgit --reset
        capgit <message words...>

    Returns the process exit code: 0 on success (including a cancelled turn),
    1 for an empty instruction or a fatal error.
    """
    args = sys.argv[1:] if argv is None else list(argv)
    ctx = Context()
    app_dir = app_data_dir()
    log_path = chat_log_path(app_dir)

    if args in (["--help"], ["-h"]):
        ctx.send_to_user(USAGE)
        return 0
    if not args:
        ctx.send_to_user(USAGE)
        return 1
    if args == ["--reset"]:
        delete_chat_log(log_path)
        ctx.send_to_user("The session was restarted.")
        return 0

    cmd = " ".join(args)
    if not cmd.strip():
        return 1

    ctx.log(f"capgit {__version__}; chat log at {log_path}")
    try:
        agent = build_agent(ctx, app_dir, pathlib.Path.cwd())
        log = load_chat_log(log_path).add_user_message(cmd)
        cancel = CancelToken()
        previous = _install_interrupt_handler(cancel)
        try:
            result = agent.run_turn(log, cancel)
        finally:
            signal.signal(signal.SIGINT, previous)
    except CapGitError as e:
        ctx.error_message(str(e))
        return 1

    if result.outcome is TurnOutcome.CANCELLED:
        ctx.send_to_user("Cancelled by user.")
    settle_chat_log(result, log_path)
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
