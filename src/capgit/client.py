# capgit: Chat Completions client on requests, with provider resolution (args > settings > env), optional .http
# request/response dumps, and cooperative cancellation of the single in-flight request.

import contextlib
import json
import pathlib
import threading
import time
from typing import Any, Dict, Iterator, List, Optional

import requests
from pydantic import ValidationError

from . import config
from .context import Context
from .errors import CompletionCancelled, CompletionError
from .models import ChatCompletion, Choice
from .settings import api_settings, run_settings


def dumpHttpFile(file: str, url: str, method: str, headers: Dict[str, str], obj: Any) -> None:
    """Write a request as a REST Client .http file (request line, headers, pretty JSON body)."""
    json_str = json.dumps(obj, indent=2, ensure_ascii=False)
    with open(file, "w", encoding="utf-8") as f:
        f.write(f"{method.upper()} {url}\n")
        for key, value in headers.items():
            f.write(f"{key}: {value}\n")
        f.write("\n")
        f.write(json_str)


def _append_http_response(file: pathlib.Path, r: requests.Response, elapsed_ms: int) -> None:
    with open(file, "a", encoding="utf-8") as f:
        f.write("\n\n### Response - elapsed_ms: " + str(elapsed_ms) + "\n")
        f.write(f"HTTP/1.1 {r.status_code} {getattr(r, 'reason', '')}\n")
        for hk, hv in r.headers.items():
            f.write(f"{hk}: {hv}\n")
        f.write("\n")
        f.write(r.text)


class CancelToken:
    """
    Cooperative cancellation shared by the SIGINT handler and the completion call.

    `cancel()` always records the request. While a request is in flight it also
    raises KeyboardInterrupt so the blocking socket read is abandoned; otherwise
    the flag is observed when the next request starts.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._in_flight = False

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()
        if self._in_flight:
            raise KeyboardInterrupt

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CompletionCancelled("cancelled by user")

    @contextlib.contextmanager
    def interruptible(self) -> Iterator[None]:
        """Mark the enclosed block as the cancellable suspension point."""
        self.raise_if_cancelled()
        self._in_flight = True
        try:
            yield
        except KeyboardInterrupt:
            self._event.set()
            raise CompletionCancelled("cancelled by user") from None
        finally:
            self._in_flight = False


class ChatCompletionsClient:
    def __init__(
        self,
        ctx: Context,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        settings: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize a minimal HTTP client for the Chat Completions API with provider autodetection.

        Provider selection precedence (highest first):
          1) Constructor args (api_key/model/base_url)
          2) settings['api'] values (provider, api_key, model, base_url)
          3) Environment
             - OpenAI: OPENAI_API_KEY, AI_MODEL, OPENAI_BASE_URL
             - Azure:  AZURE_OPENAI_API_KEY, AZURE_OPENAI_MODEL, AZURE_OPENAI_ENDPOINT

        Base URL normalization:
          - OpenAI: default https://api.openai.com/v1 ("/v1" suffix ensured)
          - Azure:  {endpoint}/openai/v1 ("/openai/v1" suffix ensured)

        Raises:
            CompletionError: when no API key (or no Azure endpoint) can be resolved.
            SettingsError: when timeout_sec is not a positive integer.
        """
        self.ctx = ctx
        self.session = requests.Session()
        settings = settings if isinstance(settings, dict) else {}
        api_cfg = api_settings(settings)

        provider: Optional[str] = str(api_cfg.get("provider") or "").strip().lower() or None
        if provider not in ("azure", "openai"):
            if config.AZURE_OPENAI_API_KEY or config.AZURE_OPENAI_ENDPOINT or _looks_like_azure(base_url or api_cfg.get("base_url")):
                provider = "azure"
            else:
                provider = "openai"

        if provider == "azure":
            resolved_api_key = api_key or api_cfg.get("api_key") or config.AZURE_OPENAI_API_KEY
            resolved_model = model or api_cfg.get("model") or config.AZURE_OPENAI_MODEL or config.AI_MODEL
            endpoint = base_url or api_cfg.get("base_url") or config.AZURE_OPENAI_ENDPOINT
            if not endpoint:
                raise CompletionError("Azure provider selected but no endpoint provided (AZURE_OPENAI_ENDPOINT or settings api.base_url).")
            endpoint = endpoint.rstrip("/")
            if not endpoint.endswith("/openai/v1"):
                endpoint = f"{endpoint}/v1" if endpoint.endswith("/openai") else f"{endpoint}/openai/v1"
            resolved_base_url = endpoint
            if not resolved_api_key:
                raise CompletionError("Azure provider selected but no API key provided (AZURE_OPENAI_API_KEY or settings api.api_key).")
            self.session.headers.update({"api-key": resolved_api_key, "Content-Type": "application/json"})
        else:
            resolved_api_key = api_key or api_cfg.get("api_key") or config.OPENAI_API_KEY
            resolved_model = model or api_cfg.get("model") or config.AI_MODEL
            resolved_base_url = (base_url or api_cfg.get("base_url") or config.OPENAI_BASE_URL or "https://api.openai.com/v1").rstrip("/")
            if not resolved_base_url.endswith("/v1"):
                resolved_base_url = f"{resolved_base_url}/v1"
            if not resolved_api_key:
                raise CompletionError("No API key provided. Set OPENAI_API_KEY or api.api_key in settings.yaml.")
            self.session.headers.update({"Authorization": f"Bearer {resolved_api_key}", "Content-Type": "application/json"})

        self.provider = provider
        self.model = resolved_model
        self.base_url = resolved_base_url
        self.timeout = run_settings(settings).timeout_sec
        log_dir = str(settings.get("http_log_dir") or config.HTTP_LOG_DIR or "").strip()
        self.http_log_dir: Optional[pathlib.Path] = pathlib.Path(log_dir).expanduser() if log_dir else None

    def chat_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _open_http_dump(self, url: str, payload: Dict[str, Any]) -> Optional[pathlib.Path]:
        if self.http_log_dir is None:
            return None
        try:
            self.http_log_dir.mkdir(parents=True, exist_ok=True)
            http_file = self.http_log_dir / f"call-{int(time.time() * 1000)}.http"
            headers_for_log = dict(self.session.headers)
            if "Authorization" in headers_for_log:
                headers_for_log["Authorization"] = "Bearer {{OPENAI_API_KEY}}"
            if "api-key" in headers_for_log:
                headers_for_log["api-key"] = "{{AZURE_OPENAI_API_KEY}}"
            dumpHttpFile(str(http_file), url, "POST", headers_for_log, payload)
            return http_file
        except (OSError, TypeError) as e:
            # Dumps are diagnostics only.
            self.ctx.log(f"Could not write HTTP dump: {e}")
            return None

    def _log_usage(self, completion: ChatCompletion) -> None:
        u = completion.usage
        if u is None:
            return
        self.ctx.log(f"Usage: prompt={u.prompt_tokens} completion={u.completion_tokens} total={u.total_tokens}")

    def create_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]],
        temperature: float,
        cancel: Optional[CancelToken] = None,
    ) -> List[Choice]:
        """
        Send one Chat Completions request and return its candidate replies.

        Nothing is retried: transport failures, non-200 statuses and unparseable
        bodies raise CompletionError. When `cancel` is given the request is the
        cancellable suspension point and an interrupt raises CompletionCancelled.
        """
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        url = self.chat_url()
        http_file = self._open_http_dump(url, payload)

        guard = cancel.interruptible() if cancel is not None else contextlib.nullcontext()
        t0 = time.time()
        with guard:
            try:
                r = self.session.post(url, json=payload, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                raise CompletionError(f"Chat Completions request failed: {e}") from e
        elapsed_ms = int((time.time() - t0) * 1000)

        if http_file is not None:
            try:
                _append_http_response(http_file, r, elapsed_ms)
            except OSError as e:
                self.ctx.log(f"Could not append HTTP response dump: {e}")

        if r.status_code != 200:
            raise CompletionError(f"Chat Completions API error {r.status_code}: {r.text[:2000]}")
        try:
            completion = ChatCompletion.model_validate(r.json())
        except (ValueError, ValidationError) as e:
            raise CompletionError(f"Chat Completions API returned an unexpected body: {e}") from e
        self.ctx.log(f"Completion received in {elapsed_ms} ms ({len(completion.choices)} choice(s))")
        self._log_usage(completion)
        return completion.choices


def _looks_like_azure(url: Optional[str]) -> bool:
    if not url:
        return False
    u = url.lower()
    return ("azure.com" in u) or ("/openai/" in u)
