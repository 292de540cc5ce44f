"""Bounded-time reachability check for remote image sources."""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Protocol
from urllib.parse import urlsplit

import httpx
import structlog

from ..config import ProbeConfig
from ..errors import ProbeFailure

NETWORK_SCHEMES = ("http", "https")


def is_network_source(source: str) -> bool:
    """Return True when ``source`` carries an http(s) scheme."""

    try:
        scheme = urlsplit(source.strip()).scheme
    except ValueError:
        return False
    return scheme.lower() in NETWORK_SCHEMES


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Outcome of one probe; ``ok`` means 2xx with an image content type."""

    url: str
    ok: bool
    status: int | None = None
    content_type: str = ""


class Prober(Protocol):
    def probe(self, url: str, timeout: float | None = None) -> ProbeResult: ...


class ReachabilityProber:
    """Issue a streamed GET, read the status line and headers, then hang up."""

    def __init__(
        self,
        config: ProbeConfig | None = None,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config or ProbeConfig()
        self.logger = logger or structlog.get_logger("gallery_ledger.prober")
        self._owns_client = client is None
        self._client = client
        self._client_lock = Lock()

    @property
    def client(self) -> httpx.Client:
        # Opened on first probe so commands that never probe hold no connection pool.
        with self._client_lock:
            if self._client is None:
                self._client = httpx.Client(
                    follow_redirects=False,
                    timeout=self.config.timeout,
                    headers={"User-Agent": self.config.user_agent},
                )
            return self._client

    def close(self) -> None:
        with self._client_lock:
            if self._owns_client and self._client is not None:
                self._client.close()
                self._client = None

    def __enter__(self) -> "ReachabilityProber":
        return self

    def __exit__(self, *_exc_info) -> None:
        self.close()

    def probe(self, url: str, timeout: float | None = None) -> ProbeResult:
        try:
            result = self._probe(url, timeout or self.config.timeout)
        except ProbeFailure as exc:
            self.logger.info("probe_failed", url=url, error=str(exc))
            return ProbeResult(url=url, ok=False)
        self.logger.debug(
            "probe_finished",
            url=url,
            ok=result.ok,
            status=result.status,
            content_type=result.content_type,
        )
        return result

    def _probe(self, url: str, timeout: float) -> ProbeResult:
        if not is_network_source(url):
            raise ProbeFailure(f"Unsupported URL: {url!r}")
        try:
            # Leaving the stream context closes the connection before the body is read.
            with self.client.stream(
                "GET",
                url,
                headers={"User-Agent": self.config.user_agent},
                timeout=timeout,
            ) as response:
                status = response.status_code
                content_type = response.headers.get("content-type", "").strip().lower()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            raise ProbeFailure(f"{type(exc).__name__}: {exc}") from exc
        ok = 200 <= status < 300 and content_type.startswith("image")
        return ProbeResult(url=url, ok=ok, status=status, content_type=content_type)


__all__ = ["NETWORK_SCHEMES", "ProbeResult", "Prober", "ReachabilityProber", "is_network_source"]
