import aiohttp
import asyncio
import logging
from typing import Any, List, Optional, Tuple
from urllib.parse import quote

from vongform.domain.exceptions import StoreUnavailable
from vongform.infrastructure.acl import ConsulTranslator

logger = logging.getLogger(__name__)

DEFAULT_CONSUL_URL = "http://localhost:8500"
DEFAULT_TIMEOUT_SECONDS = 10.0


class ConsulKVClient:
    """
    Client for the Consul HTTP KV API.
    Implements the StateStore operations; every transport failure, timeout or
    unexpected HTTP status surfaces as StoreUnavailable. Nothing is retried.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_CONSUL_URL,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = {"Accept": "application/json"}
        if token:
            self.headers["X-Consul-Token"] = token
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "ConsulKVClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
        return False

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("ConsulKVClient must be used as an async context manager")
        return self._session

    def _url(self, key: str) -> str:
        return f"{self.base_url}/v1/kv/{quote(key, safe='/')}"

    async def list(self, prefix: str) -> List[Tuple[str, Optional[str]]]:
        """
        Returns every (key, value) pair below `prefix`, sorted by key.
        An unknown prefix answers 404, which means "no entries".
        """
        try:
            async with self.session.get(
                self._url(prefix), params={"recurse": "true"}, headers=self.headers, timeout=self.timeout
            ) as response:
                if response.status == 404:
                    logger.debug(f"No keys under '{prefix}'.")
                    return []
                response.raise_for_status()
                body = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise StoreUnavailable("list", prefix, e) from e

        pairs = [ConsulTranslator.to_pair(raw_entry) for raw_entry in _entries("list", prefix, body)]
        pairs.sort(key=lambda pair: pair[0])
        logger.debug(f"Listed {len(pairs)} keys under '{prefix}'.")
        return pairs

    async def get(self, key: str) -> Optional[str]:
        try:
            async with self.session.get(self._url(key), headers=self.headers, timeout=self.timeout) as response:
                if response.status == 404:
                    return None
                response.raise_for_status()
                body = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise StoreUnavailable("get", key, e) from e

        entries = _entries("get", key, body)
        if not entries:
            return None
        _, value = ConsulTranslator.to_pair(entries[0])
        return value

    async def put(self, key: str, value: str) -> None:
        try:
            async with self.session.put(
                self._url(key), data=value.encode("utf-8"), headers=self.headers, timeout=self.timeout
            ) as response:
                response.raise_for_status()
                accepted = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise StoreUnavailable("put", key, e) from e

        # Consul answers a bare JSON boolean
        if accepted is not True:
            raise StoreUnavailable("put", key, "Consul did not accept the write")
        logger.debug(f"Wrote '{key}' = '{value}'.")

    async def delete(self, key: str) -> None:
        try:
            async with self.session.delete(self._url(key), headers=self.headers, timeout=self.timeout) as response:
                response.raise_for_status()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise StoreUnavailable("delete", key, e) from e
        logger.debug(f"Deleted '{key}'.")


def _entries(operation: str, key: str, body: Any) -> List[Any]:
    # A 200 that is not a JSON array did not come from the KV endpoint (proxy pages, error objects)
    if body is None:
        return []
    if not isinstance(body, list):
        raise StoreUnavailable(operation, key, f"unexpected response body {body!r:.200}")
    return body
