"""Cached download of remote catalog resources using ETag validation tokens."""

from dataclasses import dataclass
from pathlib import Path

import httpx
import structlog

from .errors import NetworkError
from .http_client import HttpClientService

log = structlog.stdlib.get_logger()


@dataclass(frozen=True)
class FetchResult:
    """Outcome of fetching a remote resource."""
    path: Path
    etag: str
    downloaded: bool  # False when the cached copy was reused
    stale: bool = False  # True when the network failed and the cached copy was used


class CachedResourceFetcher:
    """Fetch remote files, skipping the transfer when the cached copy is current."""

    def __init__(self, http_client: HttpClientService, allow_stale: bool = True) -> None:
        """Initialize the fetcher.

        Args:
            http_client: HTTP client used for the transfer
            allow_stale: Fall back to an existing cached copy when the network fails
        """
        self.http_client = http_client
        self.allow_stale = allow_stale

    async def fetch(self, url: str, destination: Path, etag: str) -> FetchResult:
        """Fetch ``url`` into ``destination`` unless ``etag`` still matches.

        Args:
            url: Remote resource URL
            destination: Local cache path
            etag: Validation token from the previous successful fetch

        Returns:
            FetchResult with the local path and the (possibly unchanged) token

        Raises:
            NetworkError: If the resource cannot be fetched and no usable cached copy exists
        """
        has_cache = destination.exists() and destination.stat().st_size > 0
        if not has_cache:
            # A token without the file it describes is meaningless
            etag = ""

        headers = {"If-None-Match": etag} if etag else None
        temp_path = destination.with_suffix(destination.suffix + ".part")

        try:
            response = await self.http_client.download_file(url, temp_path, headers=headers)
        except (httpx.HTTPError, OSError) as e:
            if has_cache and self.allow_stale:
                log.warning(
                    "Failed to fetch resource, using cached copy",
                    url=url,
                    path=str(destination),
                    error=str(e),
                )
                return FetchResult(path=destination, etag=etag, downloaded=False, stale=True)

            status_code = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
            raise NetworkError(
                message=f"Unable to download {destination.name}",
                original_error=e,
                url=url,
                status_code=status_code,
            ) from e

        if response.status_code == httpx.codes.NOT_MODIFIED:
            log.info("Cached resource is up to date", url=url, path=str(destination))
            return FetchResult(path=destination, etag=etag, downloaded=False)

        temp_path.replace(destination)
        new_etag = response.headers.get("etag", "")
        log.info(
            "Resource downloaded",
            url=url,
            path=str(destination),
            etag=new_etag,
        )
        return FetchResult(path=destination, etag=new_etag, downloaded=True)
