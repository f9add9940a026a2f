"""HTTP download helper shared by the discovery sources."""

from __future__ import annotations

import httpx

from sectorview.core.config import settings
from sectorview.core.exceptions import DiscoveryError
from sectorview.core.logging import get_logger


logger = get_logger("discovery.http")

USER_AGENT = "SectorView/1.0"


async def fetch_text(
    url: str,
    source: str,
    client: httpx.AsyncClient | None = None,
) -> str:
    """GET a URL and return the body as text.

    Args:
        url: Page or file to download
        source: Human-readable source name for error messages
        client: Reuse this client instead of opening one

    Raises:
        DiscoveryError: On transport failure or a non-2xx response
    """
    headers = {"User-Agent": USER_AGENT}
    try:
        if client is None:
            async with httpx.AsyncClient(
                timeout=settings.fetch_timeout, follow_redirects=True
            ) as own_client:
                response = await own_client.get(url, headers=headers)
        else:
            response = await client.get(url, headers=headers)
        response.raise_for_status()
    except httpx.RequestError as exc:
        logger.warning(f"{source} request failed: {exc}")
        raise DiscoveryError(f"Failed to fetch {source}: {exc}") from exc
    except httpx.HTTPStatusError as exc:
        logger.warning(f"{source} returned {exc.response.status_code}")
        raise DiscoveryError(
            f"{source} returned an error",
            details={"status_code": exc.response.status_code},
        ) from exc
    return response.text
