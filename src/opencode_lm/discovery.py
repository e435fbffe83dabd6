"""Option discovery for host selection menus.

These are plain read-through list calls against the agent server. They
never raise: an unreachable server yields an empty menu and a warning.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Any

import httpx

from opencode_lm._http import (
    AGENT_PATH,
    DEFAULT_BASE_URL,
    DEFAULT_REQUEST_TIMEOUT_S,
    PROVIDERS_PATH,
    auth_headers,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Option:
    """One selectable menu entry."""

    name: str
    value: str


async def _get_json(
    path: str,
    *,
    base_url: str | None,
    api_key: str | None,
    http_transport: httpx.AsyncBaseTransport | None,
    timeout_s: float,
) -> Any:
    async with httpx.AsyncClient(
        base_url=(base_url or DEFAULT_BASE_URL).rstrip("/"),
        headers=auth_headers(api_key),
        timeout=timeout_s,
        transport=http_transport,
    ) as client:
        response = await client.get(path)
        response.raise_for_status()
        return response.json()


async def list_agents(
    base_url: str | None = None,
    api_key: str | None = None,
    *,
    http_transport: httpx.AsyncBaseTransport | None = None,
    timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S,
) -> list[Option]:
    """Agents defined on the server, display names capitalized."""
    try:
        data = await _get_json(
            AGENT_PATH,
            base_url=base_url,
            api_key=api_key,
            http_transport=http_transport,
            timeout_s=timeout_s,
        )
        options = [
            Option(name=agent["name"][:1].upper() + agent["name"][1:], value=agent["name"])
            for agent in data
        ]
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.warning("Failed to load agents from OpenCode: %s", exc)
        return []
    return sorted(options, key=lambda o: o.name.casefold())


async def _load_providers(
    base_url: str | None,
    api_key: str | None,
    http_transport: httpx.AsyncBaseTransport | None,
    timeout_s: float,
) -> list[dict[str, Any]]:
    data = await _get_json(
        PROVIDERS_PATH,
        base_url=base_url,
        api_key=api_key,
        http_transport=http_transport,
        timeout_s=timeout_s,
    )
    providers = data["providers"]
    if not isinstance(providers, list):
        raise TypeError(f"'providers' must be a list, got {type(providers).__name__}")
    return providers


async def list_providers(
    base_url: str | None = None,
    api_key: str | None = None,
    *,
    http_transport: httpx.AsyncBaseTransport | None = None,
    timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S,
) -> list[Option]:
    """Upstream model providers configured on the server."""
    try:
        providers = await _load_providers(base_url, api_key, http_transport, timeout_s)
        options = [Option(name=p["name"], value=p["id"]) for p in providers]
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.warning("Failed to load providers from OpenCode: %s", exc)
        return []
    return sorted(options, key=lambda o: o.name.casefold())


async def list_models(
    provider_id: str,
    base_url: str | None = None,
    api_key: str | None = None,
    *,
    http_transport: httpx.AsyncBaseTransport | None = None,
    timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S,
) -> list[Option]:
    """Model ids offered by one provider, in server order."""
    if not provider_id:
        return []
    try:
        providers = await _load_providers(base_url, api_key, http_transport, timeout_s)
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.warning("Failed to load models from OpenCode: %s", exc)
        return []

    provider = next(
        (p for p in providers if isinstance(p, dict) and p.get("id") == provider_id),
        None,
    )
    models = provider.get("models") if provider else None
    if not isinstance(models, dict):
        return []
    return [Option(name=model_id, value=model_id) for model_id in models]
