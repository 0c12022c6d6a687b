"""HTTP client service with retry logic."""

import asyncio
from pathlib import Path
from typing import Any

import httpx
import structlog

log = structlog.stdlib.get_logger()


class HttpClientService:
    """HTTP client service with retry logic and timeout handling."""

    def __init__(
        self,
        timeout: float = 60.0,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        verify_ssl: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP client service.

        Args:
            timeout: Request timeout in seconds
            max_retries: Maximum number of retry attempts
            base_delay: Base delay for exponential backoff in seconds
            max_delay: Maximum delay between retries in seconds
            verify_ssl: Whether to verify SSL certificates
            transport: Optional transport, used by tests to stub the network
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={
                "User-Agent": "switch-library-audit/0.1"
            },
            follow_redirects=True,
            verify=verify_ssl,
            transport=transport,
        )

        log.debug(
            "HTTP client service initialized",
            timeout=timeout,
            max_retries=max_retries,
        )

    async def download_file(
        self,
        url: str,
        path: Path,
        headers: dict[str, str] | None = None,
        chunk_size: int = 65536
    ) -> httpx.Response:
        """Download a file with retry logic.

        A ``304 Not Modified`` answer is returned as-is and nothing is written.

        Args:
            url: The URL to download from
            path: Local path to save the file
            headers: Optional additional headers (e.g. ``If-None-Match``)
            chunk_size: Size of chunks to read/write in bytes

        Returns:
            The response; its body has already been written to ``path``

        Raises:
            httpx.HTTPError: If all retry attempts fail
            OSError: If file cannot be written
        """
        merged_headers = self._client.headers.copy()
        if headers:
            merged_headers.update(headers)

        path.parent.mkdir(parents=True, exist_ok=True)

        for attempt in range(self.max_retries + 1):
            try:
                log.debug(
                    "Starting file download",
                    url=url,
                    path=str(path),
                    attempt=attempt + 1
                )

                async with self._client.stream(
                    "GET",
                    url,
                    headers=merged_headers
                ) as response:
                    if response.status_code == httpx.codes.NOT_MODIFIED:
                        log.info("Remote file not modified", url=url)
                        return response

                    response.raise_for_status()

                    total_size = int(response.headers.get("content-length", 0))
                    downloaded = 0

                    with open(path, "wb") as f:
                        async for chunk in response.aiter_bytes(chunk_size):
                            f.write(chunk)
                            downloaded += len(chunk)

                    log.info(
                        "File download completed",
                        url=url,
                        path=str(path),
                        size=downloaded,
                        expected_size=total_size
                    )

                    # Compressed transfers report the encoded length, so only check identity bodies
                    if total_size > 0 and downloaded != total_size and "content-encoding" not in response.headers:
                        log.warning(
                            "Downloaded file size mismatch",
                            expected=total_size,
                            actual=downloaded
                        )
                        raise httpx.RequestError(
                            f"File size mismatch: expected {total_size}, got {downloaded}"
                        )

                    return response

            except (httpx.HTTPStatusError, httpx.RequestError, httpx.TimeoutException, OSError) as e:
                log.warning(
                    "File download failed",
                    url=url,
                    path=str(path),
                    attempt=attempt + 1,
                    error=str(e),
                    error_type=type(e).__name__
                )

                # Clean up partial file on error
                if path.exists():
                    try:
                        path.unlink()
                        log.debug("Cleaned up partial download", path=str(path))
                    except OSError:
                        log.warning("Failed to clean up partial download", path=str(path))

                if isinstance(e, httpx.HTTPStatusError) and e.response.status_code == 429:
                    retry_after = e.response.headers.get("retry-after")
                    if retry_after:
                        try:
                            delay = float(retry_after)
                            log.info("Rate limited during download, waiting", delay=delay)
                            await asyncio.sleep(delay)
                            continue
                        except ValueError:
                            pass

                # Don't retry on client errors (except rate limiting) or file system errors
                if isinstance(e, httpx.HTTPStatusError) and 400 <= e.response.status_code < 500:
                    if e.response.status_code != 429:
                        log.error("Client error during download, not retrying", status_code=e.response.status_code)
                        raise
                elif isinstance(e, OSError):
                    log.error("File system error during download, not retrying", error=str(e))
                    raise

                if attempt == self.max_retries:
                    log.error(
                        "File download failed after all retries",
                        url=url,
                        path=str(path),
                        total_attempts=self.max_retries + 1
                    )
                    raise

                delay = min(self.base_delay * (2 ** attempt), self.max_delay)
                log.info("Retrying download after delay", delay=delay)
                await asyncio.sleep(delay)

        # This should never be reached, but satisfy type checker
        raise RuntimeError("Unexpected end of retry loop")

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._client.aclose()
        log.debug("HTTP client closed")

    async def __aenter__(self) -> "HttpClientService":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: type[Exception] | None, exc_val: Exception | None, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
