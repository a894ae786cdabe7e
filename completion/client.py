"""Async text-completion clients used by the narrative engine.

Two backends are provided:

* ``AnthropicCompletionService`` talks to the Anthropic Messages API.
* ``EdgeFunctionCompletionService`` posts to an HTTP chat proxy that accepts
  ``{messages, temperature, max_tokens}`` and answers ``{content, ...}``.

Both raise ``CompletionError`` (or ``RateLimitError``) on failure; callers
decide whether that becomes a fallback.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol
from urllib.parse import urlparse

import anthropic
import httpx

from .models import ChatMessage, Completion, CompletionOptions

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class CompletionError(Exception):
    """Raised when the completion backend fails or answers with an error."""

    def __init__(self, message: str, status_code: int = 0, hint: str = ""):
        self.status_code = status_code
        self.hint = hint
        super().__init__(message)


class RateLimitError(CompletionError):
    """Raised when the backend rejects us with a 429."""

    def __init__(self, message: str, retry_after: float = 0):
        self.retry_after = retry_after
        super().__init__(message, status_code=429)


class CompletionService(Protocol):
    async def complete(
        self,
        messages: Sequence[ChatMessage],
        options: CompletionOptions,
    ) -> Completion: ...

    async def close(self) -> None: ...


def _split_system(messages: Sequence[ChatMessage]) -> tuple[str, list[dict[str, str]]]:
    system_parts = [m.content for m in messages if m.role == "system"]
    chat = [m.to_api() for m in messages if m.role != "system"]
    return "\n\n".join(system_parts), chat


class AnthropicCompletionService:
    """Completion backed by Claude. System messages are folded into ``system=``."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout: float = 30.0,
    ):
        self._client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout)
        self._model = model

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        options: CompletionOptions,
    ) -> Completion:
        system, chat = _split_system(messages)
        try:
            msg = await self._client.messages.create(
                model=self._model,
                max_tokens=options.max_tokens,
                temperature=min(options.temperature, 1.0),
                system=system,
                messages=chat,
            )
        except anthropic.RateLimitError as exc:
            raise RateLimitError(f"Rate limited: {exc}") from exc
        except anthropic.APIStatusError as exc:
            raise CompletionError(str(exc), status_code=exc.status_code) from exc
        except anthropic.APIError as exc:
            raise CompletionError(str(exc)) from exc

        text = "".join(getattr(block, "text", "") for block in msg.content).strip()
        logger.debug("Completion (%d chars): %s", len(text), text[:80])
        return Completion(
            content=text,
            model=getattr(msg, "model", self._model),
            id=getattr(msg, "id", ""),
        )

    async def close(self) -> None:
        await self._client.close()


class EdgeFunctionCompletionService:
    """Completion served by an HTTP chat proxy.

    Usage::

        async with EdgeFunctionCompletionService(url, api_key) as svc:
            completion = await svc.complete(messages, CompletionOptions())
    """

    def __init__(
        self,
        url: str,
        api_key: str = "",
        model: str = "",
        timeout: float = 30.0,
        allowed_hosts: Sequence[str] = (),
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        parsed = urlparse(url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise CompletionError(f"Invalid edge function URL: {url!r}")
        # Credentials only ever go to an allow-listed host when a list is configured
        host = (parsed.hostname or "").lower()
        if allowed_hosts and host not in {h.lower() for h in allowed_hosts}:
            raise CompletionError(f"Refusing to send credentials to {host}")
        self._url = url
        self._model = model
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(headers=headers, timeout=timeout, transport=transport)

    async def __aenter__(self) -> EdgeFunctionCompletionService:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        options: CompletionOptions,
    ) -> Completion:
        def _json_or_empty(resp: httpx.Response) -> dict[str, Any]:
            if not resp.content:
                return {}
            try:
                data = resp.json()
            except ValueError:
                return {}
            return data if isinstance(data, dict) else {}

        payload: dict[str, Any] = {
            "messages": [m.to_api() for m in messages],
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
        }
        if self._model:
            payload["model"] = self._model

        try:
            resp = await self._client.post(self._url, json=payload)
        except httpx.HTTPError as exc:
            raise CompletionError(f"Edge function unreachable: {exc}") from exc

        body = _json_or_empty(resp)

        if resp.status_code == 429:
            retry = body.get("retry_after", 0)
            raise RateLimitError(
                f"Rate limited: {body.get('error', 'too many requests')}",
                retry_after=float(retry or 0),
            )

        if resp.status_code >= 400:
            raise CompletionError(
                body.get("error", f"HTTP {resp.status_code}"),
                status_code=resp.status_code,
                hint=body.get("hint", ""),
            )

        if "error" in body and "content" not in body:
            raise CompletionError(str(body["error"]))

        completion = Completion.from_api(body)
        logger.debug("Completion (%d chars): %s", len(completion.content), completion.content[:80])
        return completion


def build_completion_service(cfg: dict) -> CompletionService:
    """Pick a backend from ``cfg['llm']['provider']``."""
    llm = cfg.get("llm", {})
    secrets = cfg.get("_secrets", {})
    provider = str(llm.get("provider", "anthropic")).lower()
    timeout = float(llm.get("http_timeout_seconds", 30.0))

    if provider == "edge":
        return EdgeFunctionCompletionService(
            url=secrets.get("edge_function_url") or llm.get("edge_url", ""),
            api_key=secrets.get("edge_function_key", ""),
            model=llm.get("edge_model", ""),
            timeout=timeout,
            allowed_hosts=llm.get("edge_allowed_hosts") or (),
        )
    if provider == "anthropic":
        return AnthropicCompletionService(
            api_key=secrets.get("anthropic_api_key", ""),
            model=llm.get("model", DEFAULT_MODEL),
            timeout=timeout,
        )
    raise ValueError(f"Unknown llm provider: {provider}")
