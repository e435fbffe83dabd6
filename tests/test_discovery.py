"""Option discovery tests: menus degrade to empty lists, never raise."""

from __future__ import annotations

import logging
from typing import Any

import httpx
import pytest

from opencode_lm.discovery import Option, list_agents, list_models, list_providers
from tests.conftest import BASE_URL

pytestmark = pytest.mark.unit

_PROVIDERS = {
    "providers": [
        {
            "id": "openai",
            "name": "OpenAI",
            "models": {"gpt-4o": {"name": "GPT-4o"}, "gpt-4o-mini": {}},
        },
        {
            "id": "anthropic",
            "name": "Anthropic",
            "models": {"claude-3-5-sonnet-20241022": {}},
        },
        {"id": "empty", "name": "Empty", "models": {}},
    ],
    "default": {"anthropic": "claude-3-5-sonnet-20241022"},
}


def _serve(routes: dict[str, Any], seen: list[httpx.Request] | None = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if request.url.path not in routes:
            return httpx.Response(404, json={"error": "Not found"})
        return httpx.Response(200, json=routes[request.url.path])

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_list_agents_capitalizes_and_sorts() -> None:
    transport = _serve({"/agent": [{"name": "plan"}, {"name": "build"}, {"name": "chat"}]})

    options = await list_agents(BASE_URL, http_transport=transport)

    assert options == [
        Option(name="Build", value="build"),
        Option(name="Chat", value="chat"),
        Option(name="Plan", value="plan"),
    ]


@pytest.mark.asyncio
async def test_list_providers_sorted_by_display_name() -> None:
    options = await list_providers(BASE_URL, http_transport=_serve({"/config/providers": _PROVIDERS}))

    assert [o.value for o in options] == ["anthropic", "empty", "openai"]
    assert options[0].name == "Anthropic"


@pytest.mark.asyncio
async def test_menus_sort_without_regard_to_case() -> None:
    payload = {
        "providers": [
            {"id": "z", "name": "zeta", "models": {}},
            {"id": "b", "name": "Beta", "models": {}},
            {"id": "a", "name": "alpha", "models": {}},
        ]
    }
    transport = _serve({"/config/providers": payload})

    options = await list_providers(BASE_URL, http_transport=transport)

    assert [o.name for o in options] == ["alpha", "Beta", "zeta"]


@pytest.mark.asyncio
async def test_list_models_for_one_provider() -> None:
    transport = _serve({"/config/providers": _PROVIDERS})

    options = await list_models("openai", BASE_URL, http_transport=transport)

    assert options == [
        Option(name="gpt-4o", value="gpt-4o"),
        Option(name="gpt-4o-mini", value="gpt-4o-mini"),
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("provider_id", ["", "unknown", "empty"])
async def test_list_models_without_matches_is_empty(provider_id: str) -> None:
    transport = _serve({"/config/providers": _PROVIDERS})
    assert await list_models(provider_id, BASE_URL, http_transport=transport) == []


@pytest.mark.asyncio
async def test_api_key_is_forwarded() -> None:
    seen: list[httpx.Request] = []
    transport = _serve({"/agent": [{"name": "build"}]}, seen)

    await list_agents(BASE_URL, "k-123", http_transport=transport)

    assert seen[0].headers["authorization"] == "Bearer k-123"


@pytest.mark.asyncio
async def test_unreachable_server_yields_empty_menus(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = httpx.MockTransport(handler)

    with caplog.at_level(logging.WARNING, logger="opencode_lm.discovery"):
        assert await list_agents(BASE_URL, http_transport=transport) == []
        assert await list_providers(BASE_URL, http_transport=transport) == []
        assert await list_models("openai", BASE_URL, http_transport=transport) == []

    assert "Failed to load agents from OpenCode" in caplog.text
    assert "Failed to load providers from OpenCode" in caplog.text
    assert "Failed to load models from OpenCode" in caplog.text


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [{"providers": "nope"}, {"other": []}, ["not", "a", "mapping"]],
)
async def test_unexpected_provider_payloads_yield_empty_menus(payload: Any) -> None:
    transport = _serve({"/config/providers": payload})

    assert await list_providers(BASE_URL, http_transport=transport) == []
    assert await list_models("openai", BASE_URL, http_transport=transport) == []


@pytest.mark.asyncio
async def test_error_status_yields_empty_menu() -> None:
    assert await list_agents(BASE_URL, http_transport=_serve({})) == []
