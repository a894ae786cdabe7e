"""Tests for completion backends and their data models."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from completion.client import (
    AnthropicCompletionService,
    CompletionError,
    EdgeFunctionCompletionService,
    RateLimitError,
    build_completion_service,
)
from completion.models import ChatMessage, Completion, CompletionOptions

URL = "https://edge.example.com/functions/v1/chat"
MESSAGES = (ChatMessage(role="system", content="Narre."), ChatMessage(role="user", content="Vai!"))


def _complete(handler, **kwargs) -> Completion:
    async def _run() -> Completion:
        service = EdgeFunctionCompletionService(
            URL, api_key="secret", transport=httpx.MockTransport(handler), **kwargs
        )
        async with service:
            return await service.complete(MESSAGES, CompletionOptions(temperature=0.9, max_tokens=300))

    return asyncio.run(_run())


class TestEdgeFunction:
    def test_posts_messages_and_reads_content(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"content": '{"narrative": "ok"}', "model": "m1", "id": "c1"})

        completion = _complete(handler, model="m1")
        assert completion.content == '{"narrative": "ok"}'
        assert completion.model == "m1"
        assert seen["auth"] == "Bearer secret"
        assert seen["body"]["temperature"] == 0.9
        assert seen["body"]["max_tokens"] == 300
        assert seen["body"]["model"] == "m1"
        assert seen["body"]["messages"][0] == {"role": "system", "content": "Narre."}

    def test_rate_limit(self):
        def handler(request):
            return httpx.Response(429, json={"error": "slow down", "retry_after": 12})

        with pytest.raises(RateLimitError) as exc:
            _complete(handler)
        assert exc.value.retry_after == 12
        assert exc.value.status_code == 429

    def test_http_error_carries_hint(self):
        def handler(request):
            return httpx.Response(500, json={"error": "upstream down", "hint": "try later"})

        with pytest.raises(CompletionError) as exc:
            _complete(handler)
        assert exc.value.status_code == 500
        assert exc.value.hint == "try later"

    def test_error_body_without_content(self):
        def handler(request):
            return httpx.Response(200, json={"error": "no key configured"})

        with pytest.raises(CompletionError):
            _complete(handler)

    def test_non_json_body_is_empty_content(self):
        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        assert _complete(handler).content == ""

    def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(CompletionError):
            _complete(handler)

    def test_rejects_invalid_url(self):
        with pytest.raises(CompletionError):
            EdgeFunctionCompletionService("ftp://nowhere")

    def test_host_outside_allow_list_is_refused(self):
        with pytest.raises(CompletionError, match="evil.example.net"):
            EdgeFunctionCompletionService(
                "https://evil.example.net/chat", api_key="secret", allowed_hosts=["edge.example.com"]
            )

    def test_allow_listed_host_is_accepted(self):
        def handler(request):
            return httpx.Response(200, json={"content": "ok"})

        assert _complete(handler, allowed_hosts=["EDGE.example.com"]).content == "ok"


class TestBuildService:
    def test_edge_provider(self):
        cfg = {
            "llm": {"provider": "edge"},
            "_secrets": {"edge_function_url": URL, "edge_function_key": "k"},
        }
        service = build_completion_service(cfg)
        assert isinstance(service, EdgeFunctionCompletionService)
        asyncio.run(service.close())

    def test_edge_provider_honours_allow_list(self):
        cfg = {
            "llm": {"provider": "edge", "edge_allowed_hosts": ["other.example.com"]},
            "_secrets": {"edge_function_url": URL, "edge_function_key": "k"},
        }
        with pytest.raises(CompletionError):
            build_completion_service(cfg)

    def test_anthropic_provider(self):
        cfg = {"llm": {"provider": "anthropic", "model": "claude-x"}, "_secrets": {"anthropic_api_key": "k"}}
        service = build_completion_service(cfg)
        assert isinstance(service, AnthropicCompletionService)
        asyncio.run(service.close())

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            build_completion_service({"llm": {"provider": "carrier-pigeon"}})


class TestModels:
    def test_completion_from_api_defaults(self):
        completion = Completion.from_api({"content": None, "usage": "n/a"})
        assert completion.content == ""
        assert completion.usage == {}

    def test_hotter_never_cools_down(self):
        options = CompletionOptions(temperature=0.85, max_tokens=900)
        assert options.hotter(1.0).temperature == 1.0
        assert options.hotter(0.5).temperature == 0.85
        assert options.hotter(1.0).max_tokens == 900
