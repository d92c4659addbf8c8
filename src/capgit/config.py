# capgit: Centralize environment-driven configuration constants so other modules can import them without circular dependencies.

import os

# OpenAI env (Chat Completions)
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
AI_MODEL = os.environ.get("AI_MODEL", "gpt-4o")  # OpenAI model id
OPENAI_BASE_URL = os.environ.get("OPENAI_BASE_URL", "")

# Azure OpenAI env; used when the provider resolves to azure
AZURE_OPENAI_API_KEY = os.environ.get("AZURE_OPENAI_API_KEY", "")
AZURE_OPENAI_ENDPOINT = os.environ.get("AZURE_OPENAI_ENDPOINT", "")
AZURE_OPENAI_MODEL = os.environ.get("AZURE_OPENAI_MODEL", "")

# Application data directory override (chat log and settings.yaml live here)
CAPGIT_HOME = os.environ.get("CAPGIT_HOME", "").strip()

# Sampling temperature; non-zero so replies are phrased with some variety
TEMPERATURE = float(os.environ.get("CAPGIT_TEMPERATURE", "0.8") or "0.8")

# Completion rounds per turn (0 disables the cap)
MAX_ROUNDS = int(os.environ.get("CAPGIT_MAX_ROUNDS", "0") or "0")

# HTTP timeout for a single completion request, in seconds
TIMEOUT_SEC = int(os.environ.get("CAPGIT_TIMEOUT_SEC", "240") or "240")

# Optional directory receiving .http dumps of every completion request
HTTP_LOG_DIR = os.environ.get("CAPGIT_HTTP_LOG_DIR", "").strip()

# Emit [LOG] lines on stderr
VERBOSE = os.environ.get("CAPGIT_VERBOSE", "").strip().lower() in ("1", "true", "yes", "y")
