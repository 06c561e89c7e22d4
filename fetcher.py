"""Secondary page fetch for novel landing pages."""
import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

from config import settings

logger = logging.getLogger(__name__)


@dataclass
class FetchResponse:
    """Minimal response of a page fetch."""
    url: str
    status: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class PageFetcher:
    """
    Fetch landing pages over HTTP with cookies kept across requests.

    Network failures raise ``aiohttp.ClientError`` or ``asyncio.TimeoutError``;
    non-success statuses are returned, not raised.
    """

    def __init__(
            self,
            timeout_seconds: Optional[float] = None,
            user_agent: Optional[str] = None,
            session: Optional[aiohttp.ClientSession] = None,
    ):
        self.timeout_seconds = timeout_seconds or settings.fetch_timeout_seconds
        self.user_agent = user_agent or settings.user_agent
        self._session = session

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                cookie_jar=aiohttp.CookieJar(),
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                },
            )
        return self._session

    async def fetch(self, url: str) -> FetchResponse:
        """
        Fetch a page.

        Args:
            url: Absolute URL

        Returns:
            FetchResponse with status and decoded body
        """
        session = self._get_session()
        logger.debug(f"Fetching {url}")
        async with session.get(url) as response:
            text = await response.text(errors="replace")
            return FetchResponse(url=str(response.url), status=response.status, text=text)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
