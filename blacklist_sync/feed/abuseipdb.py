"""AbuseIPDB client: bulk blacklist snapshot and single address checks."""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog

from ..config import FeedConfig
from ..entry import SourceBackend
from ..errors import FeedParseError
from ..logging_conf import component_logger


class AbuseIpDbClient:
    """The only component that talks to AbuseIPDB.

    Request failures never raise: transport errors and 5xx statuses are
    logged at error level, 4xx statuses (quota / rate limiting) at warning
    level, and the call returns ``None``.
    """

    backend = SourceBackend.ABUSEIPDB

    def __init__(
        self,
        config: FeedConfig,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if not config.api_key:
            raise ValueError("AbuseIPDB client requires an API key")
        self.config = config
        self.logger = logger or component_logger("feed").bind(feed="abuseipdb")
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=config.timeout,
            follow_redirects=True,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "AbuseIpDbClient":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def fetch_snapshot(self) -> str | None:
        """Full current blacklist as newline separated text."""

        return self._call("blacklist", accept="text/plain")

    def check_address(self, address: str) -> bool | None:
        """``True`` if the address is still listed at or above the threshold.

        ``None`` means the feed was unreachable or refused the request. A
        successful response without a readable score raises
        :class:`FeedParseError`, which concerns this address only.
        """

        body = self._call("check", accept="application/json", params={"ipAddress": address})
        if body is None:
            return None
        score = self._confidence_score(body)
        if score is None:
            raise FeedParseError(f"No abuseConfidenceScore in response for {address}")
        return score >= self.config.confidence_threshold

    # ------------------------------------------------------------------
    def _call(self, path: str, accept: str, params: dict[str, Any] | None = None) -> str | None:
        headers = {"Key": self.config.api_key or "", "Accept": accept}
        try:
            response = self._client.get(self._url(path), params=params, headers=headers)
        except httpx.HTTPError as exc:
            self.logger.error("request_failed", endpoint=path, error=str(exc))
            return None
        if response.is_success:
            return response.text
        if response.is_client_error:
            self.logger.warning("request_limited", endpoint=path, status=response.status_code)
        else:
            self.logger.error("request_error", endpoint=path, status=response.status_code)
        return None

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path}"

    @staticmethod
    def _confidence_score(body: str) -> int | None:
        try:
            payload = json.loads(body)
        except ValueError:
            return None
        if not isinstance(payload, dict):
            return None
        data = payload.get("data")
        if not isinstance(data, dict):
            return None
        score = data.get("abuseConfidenceScore")
        if isinstance(score, bool) or not isinstance(score, int):
            return None
        return score


__all__ = ["AbuseIpDbClient"]
