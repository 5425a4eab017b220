"""
Concurrent download of the photos referenced by an inventory record.
Every photo gets its own timeout; a failure never cancels the others.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

import httpx

from inventory_sheet.config import settings
from inventory_sheet.models import Photo

logger = logging.getLogger(__name__)


class PhotoStatus:
    OK = "ok"
    FAILED = "failed"  # network error, non-success status or timeout
    EMPTY = "empty"    # nothing to fetch, or an empty body


@dataclass(frozen=True)
class PhotoResult:
    photo: Photo
    status: str
    content: Optional[bytes] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == PhotoStatus.OK


class PhotoFetcher:
    """Fetches photo bytes from the storage base URL."""

    def __init__(
        self,
        base_url: str = None,
        timeout: float = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        base_url = base_url if base_url is not None else settings.PHOTO_BASE_URL
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout if timeout is not None else settings.PHOTO_FETCH_TIMEOUT
        self.transport = transport

    def url_for(self, photo: Photo) -> str:
        return f"{self.base_url}{photo.filename.strip()}"

    async def fetch_all(self, photos: Sequence[Photo]) -> List[PhotoResult]:
        """
        Fetch all photos concurrently and wait for every one to settle.

        Returns:
            One PhotoResult per input photo, in input order.
        """
        if not photos:
            return []

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self.transport, follow_redirects=True
        ) as client:
            results = await asyncio.gather(
                *(self._fetch_one(client, photo) for photo in photos)
            )

        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.warning(f"{failed}/{len(results)} photos could not be fetched")
        return list(results)

    async def _fetch_one(self, client: httpx.AsyncClient, photo: Photo) -> PhotoResult:
        if not photo.filename.strip():
            return PhotoResult(photo, PhotoStatus.EMPTY, error="no filename")

        started = time.monotonic()
        try:
            url = self.url_for(photo)
            response = await asyncio.wait_for(client.get(url), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Photo {photo.filename}: timed out after {self.timeout:.0f}s")
            return PhotoResult(photo, PhotoStatus.FAILED, error="timeout")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Photo {photo.filename}: {e.__class__.__name__}: {e}")
            return PhotoResult(photo, PhotoStatus.FAILED, error=str(e) or e.__class__.__name__)

        if not response.is_success:
            logger.warning(f"Photo {photo.filename}: HTTP {response.status_code}")
            return PhotoResult(photo, PhotoStatus.FAILED, error=f"HTTP {response.status_code}")

        if not response.content:
            return PhotoResult(photo, PhotoStatus.EMPTY, error="empty body")

        logger.debug(
            f"Photo {photo.filename}: {len(response.content)} bytes "
            f"in {time.monotonic() - started:.2f}s"
        )
        return PhotoResult(photo, PhotoStatus.OK, content=response.content)
