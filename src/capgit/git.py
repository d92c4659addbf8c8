# capgit: Thin wrapper around the git executable for the operations the tools expose (status, stage, unstage, commit).
# Failures surface as GitError so tool dispatch can hand them back to the model as text.

import pathlib
import subprocess
from typing import List, Sequence, Tuple

from pydantic import BaseModel, Field

from .errors import GitError, NothingToCommitError


def run_git(args: List[str], cwd: pathlib.Path) -> Tuple[int, str, str]:
    """Run a git command in cwd and return (returncode, stdout, stderr)."""
    try:
        proc = subprocess.Popen(["git"] + args, cwd=str(cwd), stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
    except FileNotFoundError as e:
        raise GitError("git executable not found on PATH") from e
    out, err = proc.communicate()
    return proc.returncode, out, err


class GitStatus(BaseModel):
    """Working tree state as reported by `git status` with rename detection."""

    branch: str
    staged: List[str] = Field(default_factory=list)
    modified: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)
    untracked: List[str] = Field(default_factory=list)


class CommitInfo(BaseModel):
    sha: str
    author: str


def parse_porcelain(out: str, branch: str) -> GitStatus:
    """
    Parse `git status --porcelain=v1 -z` output.

    Entries are NUL separated; a rename or copy in either the index or the
    worktree column is followed by an extra entry holding the original path,
    which is skipped. Worktree renames (intent-to-add files) count as modified.
    """
    status = GitStatus(branch=branch)
    entries = out.split("\0")
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if len(entry) < 4:
            continue
        x, y, path = entry[0], entry[1], entry[3:]
        if x in "RC" or y in "RC":
            i += 1
        if x == "?" and y == "?":
            status.untracked.append(path)
            continue
        if x == "!":
            continue
        if x not in " ?":
            status.staged.append(path)
        if y in "MTURC":
            status.modified.append(path)
        elif y == "D":
            status.missing.append(path)
    return status


class GitRepository:
    """The git working tree rooted at (or containing) `root`."""

    def __init__(self, root: pathlib.Path) -> None:
        self.root = pathlib.Path(root)

    def _git(self, args: List[str]) -> str:
        rc, out, err = run_git(args, self.root)
        if rc != 0:
            detail = (err or out).strip() or f"exit status {rc}"
            raise GitError(f"git {args[0]}: {detail}")
        return out

    def has_head(self) -> bool:
        rc, _, _ = run_git(["rev-parse", "--verify", "-q", "HEAD"], self.root)
        return rc == 0

    def current_branch(self) -> str:
        """Return the canonical name of HEAD (e.g. refs/heads/main), or "HEAD" when detached."""
        rc, out, _ = run_git(["symbolic-ref", "-q", "HEAD"], self.root)
        if rc == 0 and out.strip():
            return out.strip()
        # Detached HEAD; still fail loudly outside a repository.
        self._git(["rev-parse", "--git-dir"])
        return "HEAD"

    def status(self, include_untracked: bool = True) -> GitStatus:
        """Return staged, modified, missing and (optionally) untracked paths, with renames detected."""
        branch = self.current_branch()
        out = self._git([
            "status",
            "--porcelain=v1",
            "-z",
            "--find-renames",
            "--untracked-files=all" if include_untracked else "--untracked-files=no",
        ])
        return parse_porcelain(out, branch)

    def stage(self, patterns: Sequence[str]) -> GitStatus:
        """Stage files matching the glob patterns, including deletions, and return the new status."""
        if patterns:
            self._git(["add", "--all", "--"] + list(patterns))
        return self.status(include_untracked=False)

    def unstage(self, patterns: Sequence[str]) -> GitStatus:
        """Remove files matching the glob patterns from the index, keeping working tree changes."""
        if patterns:
            if self.has_head():
                self._git(["reset", "-q", "HEAD", "--"] + list(patterns))
            else:
                # capgit: Before the first commit there is no HEAD to reset to.
                self._git(["rm", "-r", "-q", "--cached", "--ignore-unmatch", "--"] + list(patterns))
        return self.status(include_untracked=False)

    def commit(self, message: str) -> CommitInfo:
        """Commit the index with `message`; empty commits are refused with NothingToCommitError."""
        if not self.status(include_untracked=False).staged:
            raise NothingToCommitError("nothing is staged for commit")
        self._git(["commit", "-q", "-m", message])
        sha, _, author = self._git(["log", "-1", "--format=%H%x00%an"]).strip().partition("\0")
        return CommitInfo(sha=sha, author=author)
