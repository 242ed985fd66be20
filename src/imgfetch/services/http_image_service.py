# src/imgfetch/services/http_image_service.py
import asyncio
import base64
import logging
from typing import Dict, Optional

import aiohttp

from imgfetch.utils.url_utils import UrlUtils

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
DEFAULT_USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) chat-exporter"


class HttpImageService:
    """
    Fetches images over HTTP and turns them into data URIs.
    Manages the aiohttp session; every request is time-bounded and the byte
    cap is enforced while the body streams in.
    """

    def __init__(
            self,
            page_url: str,
            max_bytes: int,
            timeout_s: float = 20.0,
            cookies: Optional[Dict[str, str]] = None,
            user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.page_url = page_url
        self.max_bytes = max_bytes
        self.timeout = float(timeout_s)
        self.cookies = cookies or {}
        self.user_agent = user_agent
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def initialize(self):
        if not self.session or self.session.closed:
            timeout_obj = aiohttp.ClientTimeout(total=self.timeout)
            default_headers = {
                'Accept': 'image/*,*/*;q=0.8',
                'User-Agent': self.user_agent,
            }
            if self.page_url:
                default_headers['Referer'] = self.page_url
            self.session = aiohttp.ClientSession(
                timeout=timeout_obj, headers=default_headers, cookies=self.cookies
            )
            logger.debug("HttpImageService: Session initialized.")

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
            logger.debug("HttpImageService: Session closed.")

    async def fetch_data_uri(self, src: str) -> Optional[str]:
        """
        Main entry point. Returns a data URI for the image, or None on any
        failure (non-HTTP source, non-200 status, timeout, size above the cap).
        """
        url = UrlUtils.resolve(self.page_url, src)
        if not UrlUtils.is_http_url(url):
            return None

        if not self.session or self.session.closed:
            await self.initialize()

        try:
            return await self._execute_get(url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug("Image fetch failed for %s: %s", url, e)
            return None

    async def _execute_get(self, url: str) -> Optional[str]:
        async with self.session.get(url, allow_redirects=True) as response:
            if response.status != 200:
                logger.debug("Image fetch for %s returned %s", url, response.status)
                return None

            if response.content_length is not None and response.content_length > self.max_bytes:
                logger.debug("Image %s announces %d bytes, above the cap.", url, response.content_length)
                return None

            body = bytearray()
            async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                body.extend(chunk)
                if len(body) > self.max_bytes:
                    logger.debug("Image %s exceeded the %d byte cap while streaming.", url, self.max_bytes)
                    return None

            content_type = response.content_type or "application/octet-stream"
            return f"data:{content_type};base64," + base64.b64encode(bytes(body)).decode("ascii")
