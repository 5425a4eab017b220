import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from inventory_sheet.config import settings
from inventory_sheet.models import InventoryRecord

logger = logging.getLogger(__name__)


class RecordSourceError(Exception):
    """Inventory API error"""
    pass


class RecordNotFoundError(RecordSourceError):
    """No record exists for the requested code"""
    pass


_DEFAULT_HEADERS = {
    'accept': 'application/json, text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'accept-language': 'en-US,en;q=0.9',
    'cache-control': 'no-cache',
    'user-agent': (
        'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36'
    ),
}


class InventoryApiClient:
    """Client for the inventory technical-sheet endpoint"""

    def __init__(
        self,
        base_url: str = None,
        cookies: Optional[Dict[str, str]] = None,
        timeout: float = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        self.base_url = base_url or settings.INVENTORY_API_URL
        self.cookies = settings.session_cookies if cookies is None else cookies
        self.timeout = timeout if timeout is not None else settings.INVENTORY_API_TIMEOUT
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = dict(_DEFAULT_HEADERS)
        if self.cookies:
            headers['cookie'] = '; '.join(f"{k}={v}" for k, v in self.cookies.items())
        return headers

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _request(self, code: str) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            return await client.get(
                self.base_url, params={'codigo': code}, headers=self._headers()
            )

    async def fetch_raw(self, code: str) -> Dict[str, Any]:
        """
        Fetch the raw record for an item code.

        The endpoint answers either with the record object itself or with an
        array whose first element is the record.
        """
        try:
            response = await self._request(code)
        except httpx.HTTPError as e:
            raise RecordSourceError(f"Inventory API request failed: {e}") from e

        if not response.is_success:
            raise RecordSourceError(
                f"Inventory API error: {response.status_code} {response.reason_phrase}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RecordSourceError("Inventory API returned a non-JSON response") from e

        if isinstance(data, list):
            if not data:
                raise RecordNotFoundError(f"No records found for code: {code}")
            data = data[0]

        if not isinstance(data, dict):
            raise RecordSourceError(
                f"Unexpected inventory API payload: {type(data).__name__}"
            )
        return data

    async def fetch_record(self, code: str) -> InventoryRecord:
        """Fetch and validate the record for an item code."""
        logger.info(f"Fetching inventory record {code}")
        data = await self.fetch_raw(code)
        record = InventoryRecord.from_api(data)
        logger.info(f"Fetched inventory record {code}: {len(record.photos)} photos")
        return record
