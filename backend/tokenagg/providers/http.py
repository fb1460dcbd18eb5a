from __future__ import annotations

from typing import Any

import httpx

from tokenagg.errors import UpstreamError


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    failure_label: str,
    params: dict[str, str] | None = None,
    headers: dict[str, str] | None = None,
) -> Any:
    """GET a JSON document; non-2xx responses raise UpstreamError."""
    response = await client.get(url, params=params, headers=headers)
    if response.status_code < 200 or response.status_code >= 300:
        raise UpstreamError(
            f"{failure_label} failed: {response.status_code}",
            status_code=response.status_code,
        )
    return response.json()
