"""
HTTP client for the platform API.

The cache only needs one operation from the network: fetch a resource path
and get JSON back, or a ``NetworkError`` describing why not.
"""

import asyncio
import json
from typing import Any, Callable, Dict, Optional

import aiohttp

from .exceptions import NetworkError
from ..config import ApiSettings
from ..logging_config import get_logger


TokenProvider = Callable[[], Optional[str]]


class ApiClient:
    """Thin aiohttp wrapper sending bearer-authenticated JSON requests."""

    def __init__(
        self,
        base_url: str,
        token_provider: Optional[TokenProvider] = None,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.token_provider = token_provider
        self.timeout = timeout
        self.session = session
        self.logger = get_logger(__name__, 'api_client')

    @classmethod
    def from_settings(cls, settings: ApiSettings, token_provider: Optional[TokenProvider] = None) -> 'ApiClient':
        return cls(settings.api_base_url, token_provider=token_provider, timeout=settings.request_timeout)

    async def get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self.session

    async def close(self) -> None:
        """Close HTTP session."""
        if self.session and not self.session.closed:
            await self.session.close()

    def build_url(self, path: str) -> str:
        if path.startswith('http://') or path.startswith('https://'):
            return path
        return f"{self.base_url}{path}"

    def _headers(self) -> Dict[str, str]:
        headers = {'Accept': 'application/json'}
        token = self.token_provider() if self.token_provider else None
        if token:
            headers['Authorization'] = f"Bearer {token}"
        return headers

    @staticmethod
    def _parse(text: str) -> Any:
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError:
            return text

    async def fetch(self, path: str) -> Any:
        """
        GET ``path`` and return the decoded JSON body.

        Raises:
            NetworkError: on transport failure or a non-2xx status.
        """
        url = self.build_url(path)
        session = await self.get_session()

        try:
            async with session.get(url, headers=self._headers()) as response:
                text = await response.text()
                status = response.status
                reason = response.reason
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.warning(f"Request to {path} failed: {e}", operation="fetch")
            raise NetworkError(f"Request failed: {e}", path=path) from e

        body = self._parse(text)

        if not 200 <= status < 300:
            message = (body.get('message') or body.get('error')) if isinstance(body, dict) else None
            raise NetworkError(
                f"{status}: {message or text or reason}",
                status=status,
                path=path,
                body=body,
            )

        return body
