"""HTTP client for the ord indexing service.

All lookups are read-only ``GET`` requests asking for JSON. Transient
failures (connection errors, timeouts, HTTP 429 and 5xx) are retried with
exponential backoff up to ``OrdConfig.max_retries`` attempts, after which
:class:`OrdTransportError` is raised.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional
from urllib.parse import quote

import requests
from requests import RequestException

from .config import OrdConfig, load_ord_config
from .models import (
    AddressResponse,
    InscriptionResponse,
    OutputResponse,
    ResponseFormatError,
    RuneResponse,
)
from .runes.model import RuneId

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class OrdAPIError(RuntimeError):
    """Raised when the indexer answers with a non-retryable error or bad JSON."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OrdTransportError(RuntimeError):
    """Raised when the indexer stays unreachable after every retry."""


class OrdClient:
    """Read-only client for an ord server's JSON API."""

    def __init__(
        self,
        config: OrdConfig | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or OrdConfig()
        self._session = session or requests.Session()
        self._sleep = sleep

    @classmethod
    def from_env(cls) -> "OrdClient":
        """Instantiate a client using environment variables or config file."""

        return cls(load_ord_config())

    @property
    def base_api_url(self) -> str:
        return self.config.base_url

    @property
    def base_public_url(self) -> str:
        return self.config.public_url

    def get_json(self, path: str) -> Any:
        """GET ``path`` relative to the base URL and return the decoded JSON."""

        url = f"{self.config.base_url}/{path.lstrip('/')}"
        delay = self.config.backoff_seconds
        last_error: Optional[str] = None

        for attempt in range(1, self.config.max_retries + 1):
            try:
                response = self._session.get(
                    url,
                    headers={"accept": "application/json"},
                    timeout=self.config.timeout,
                )
            except RequestException as exc:
                last_error = str(exc)
                logger.warning(
                    "ord request %s failed (attempt %d/%d): %s",
                    url,
                    attempt,
                    self.config.max_retries,
                    exc,
                )
            else:
                if response.status_code in RETRYABLE_STATUS_CODES:
                    last_error = f"HTTP {response.status_code}"
                    logger.warning(
                        "ord request %s returned HTTP %s (attempt %d/%d)",
                        url,
                        response.status_code,
                        attempt,
                        self.config.max_retries,
                    )
                elif not response.ok:
                    logger.error("ord HTTP error %s from %s", response.status_code, url)
                    raise OrdAPIError(
                        f"ord server returned HTTP {response.status_code} for {path}",
                        status_code=response.status_code,
                    )
                else:
                    try:
                        return response.json()
                    except ValueError as exc:
                        logger.debug("ord JSON parse error: %s", response.text, exc_info=True)
                        raise OrdAPIError(f"ord server returned malformed JSON for {path}") from exc

            if attempt < self.config.max_retries:
                self._sleep(delay)
                delay *= 2

        raise OrdTransportError(
            f"ord server at {self.config.base_url} unavailable after "
            f"{self.config.max_retries} attempts: {last_error}"
        )

    def _parse(self, parser: Callable[[Any], Any], payload: Any, what: str) -> Any:
        try:
            return parser(payload)
        except ResponseFormatError as exc:
            raise OrdAPIError(f"unexpected {what} response: {exc}") from exc

    def fetch_rune_details(self, rune_id: RuneId | str) -> RuneResponse:
        payload = self.get_json(f"/rune/{quote(str(rune_id), safe=':')}")
        return self._parse(RuneResponse.from_json, payload, "rune")

    def fetch_output(self, txid: str, vout: int) -> OutputResponse:
        payload = self.get_json(f"/output/{txid}:{vout}")
        return self._parse(OutputResponse.from_json, payload, "output")

    def fetch_address(self, address: str) -> AddressResponse:
        payload = self.get_json(f"/address/{quote(address)}")
        return self._parse(AddressResponse.from_json, payload, "address")

    def fetch_inscription(self, inscription_id: str) -> InscriptionResponse:
        payload = self.get_json(f"/inscription/{quote(inscription_id)}")
        return self._parse(InscriptionResponse.from_json, payload, "inscription")

    def fetch_latest_block_height(self) -> int:
        payload = self.get_json("/blockheight")
        if isinstance(payload, bool) or not isinstance(payload, int):
            raise OrdAPIError(f"unexpected blockheight response: {payload!r}")
        return payload

    def public_url_for(self, kind: str, identifier: str) -> str:
        """Link to the public explorer page for ``kind`` (``rune``, ``tx``, ...)."""

        return f"{self.config.public_url}/{kind}/{identifier}"
