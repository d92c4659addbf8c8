# capgit: Exception taxonomy shared by the client, chat log, git wrapper and orchestrator.


class CapGitError(RuntimeError):
    """Base class for errors that end a capgit run."""


class CompletionError(CapGitError):
    """The completion service could not be reached or returned an unusable reply."""


class CompletionCancelled(CapGitError):
    """The in-flight completion request was abandoned at the user's request."""


class ChatLogError(CapGitError):
    """The persisted chat log exists but cannot be read back."""


class RoundLimitExceeded(CapGitError):
    """A turn ran more completion rounds than the configured cap allows."""


class GitError(CapGitError):
    """A git invocation failed. Tool dispatch turns these into text for the model."""


class NothingToCommitError(GitError):
    """A commit was requested while the index has no staged changes."""


class SettingsError(CapGitError):
    """settings.yaml or the environment holds a value capgit cannot use."""
