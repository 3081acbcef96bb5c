"""Provider data download.

Fetch failures are raised as SourceFetchError so callers never mistake a
failed download for a legitimately empty rule set. No retries are made.
"""

import asyncio
import logging
from typing import Optional, Sequence

import httpx

from linkpure.core.constants import DEFAULTS
from linkpure.core.exceptions import SourceFetchError
from linkpure.core.models import SourceConfig


logger = logging.getLogger(__name__)


async def fetch_source(
    url: str,
    *,
    timeout: float = DEFAULTS["fetch_timeout"],
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """Download provider text.

    Args:
        url: Provider URL
        timeout: Request timeout in seconds
        transport: Optional httpx transport (used by tests)

    Returns:
        Response body as text

    Raises:
        SourceFetchError: On HTTP errors, timeouts, or transport failures
    """
    logger.info(f"Fetching {url}")
    try:
        async with httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.text
    except httpx.HTTPStatusError as e:
        raise SourceFetchError(
            f"HTTP {e.response.status_code} while fetching {url}"
        ) from e
    except httpx.HTTPError as e:
        raise SourceFetchError(f"Failed to fetch {url}: {e}") from e


async def fetch_sources(
    sources: Sequence[SourceConfig],
    *,
    timeout: float = DEFAULTS["fetch_timeout"],
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[str, str]:
    """Download every remote source concurrently.

    Returns:
        Mapping of source name to fetched text

    Raises:
        SourceFetchError: If any download fails
    """
    remote = [source for source in sources if source.is_remote]
    texts = await asyncio.gather(*(
        fetch_source(source.url, timeout=timeout, transport=transport)
        for source in remote
    ))
    return {source.name: text for source, text in zip(remote, texts)}
