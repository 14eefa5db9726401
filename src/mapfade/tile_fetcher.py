"""Network retrieval of raw tile payloads."""

from __future__ import annotations

import logging
from typing import Optional

import requests

from .config import HTTP_TIMEOUT_SEC, HTTP_USER_AGENT, TILE_URL_TEMPLATE
from .errors import AddressInvalidError, TileFetchError
from .tile_address import TileAddress

_LOGGER = logging.getLogger(__name__)


def create_session(user_agent: str = HTTP_USER_AGENT, pool_size: int = 8) -> requests.Session:
    """Return a pooled :class:`requests.Session` for tile downloads."""

    session = requests.Session()
    session.headers.update({"User-Agent": user_agent})
    # ``pool_block=False`` creates extra connections when the pool is busy
    # instead of stalling a worker thread.
    adapter = requests.adapters.HTTPAdapter(
        pool_connections=pool_size,
        pool_maxsize=pool_size,
        pool_block=False,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class TileFetcher:
    """Blocking HTTP GET of one tile per call.

    Failures are never retried here; they surface as :class:`TileFetchError`
    and the caller decides whether to try again.
    """

    def __init__(
        self,
        url_template: str = TILE_URL_TEMPLATE,
        *,
        timeout: float = HTTP_TIMEOUT_SEC,
        session: Optional[requests.Session] = None,
        user_agent: str = HTTP_USER_AGENT,
    ) -> None:
        self._url_template = url_template
        self._timeout = timeout
        self._owns_session = session is None
        self._session = session if session is not None else create_session(user_agent)

    # ------------------------------------------------------------------
    @property
    def url_template(self) -> str:
        return self._url_template

    # ------------------------------------------------------------------
    def fetch(self, address: TileAddress) -> bytes:
        """Download and return the raw payload of *address*."""

        if not address.is_valid():
            raise AddressInvalidError(f"Tile {address} lies outside the zoom {address.zoom} grid")

        url = address.fetch_locator(self._url_template)
        _LOGGER.debug("Requesting tile %s from %s", address, url)
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as exc:
            raise TileFetchError(f"Request for tile {address} failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise TileFetchError(f"Request for tile {address} returned HTTP {response.status_code}")
        return response.content

    # ------------------------------------------------------------------
    def close(self) -> None:
        """Release the HTTP session when this fetcher created it."""

        if self._owns_session:
            self._session.close()


__all__ = ["TileFetcher", "create_session"]
