# capgit: Package marker; exposes the distribution version for the CLI help text.

__version__ = "0.1.0"
