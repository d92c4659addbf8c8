# capgit: Console I/O and lightweight logging, kept out of the orchestrator and tools so tests can capture it.

import sys
from typing import Optional

from .config import VERBOSE


class Context:
    """
    Thin wrapper around console I/O and logging used by capgit.

    User-facing text goes to stdout; log lines and errors go to stderr so the
    assistant's replies can be piped without noise.
    """

    def __init__(self, verbose: Optional[bool] = None) -> None:
        """Create a console context; `verbose` defaults to CAPGIT_VERBOSE."""
        self.verbose = VERBOSE if verbose is None else verbose

    def send_to_user(self, message: str) -> None:
        """Send a user-facing message to stdout."""
        print(message)

    def log(self, message: str) -> None:
        """Emit a `[LOG]` line to stderr when verbose output is enabled."""
        if self.verbose:
            print(f"[LOG] {message}", file=sys.stderr)

    def error_message(self, message: str) -> None:
        """Print an error message to stderr."""
        print(f"Error: {message}", file=sys.stderr)
