from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from .api_models import CatalogEntry


class TransportFailure(Exception):
    """The catalog could not be reached or answered with garbage."""


def check_long_poll_budget(wait_s: float, timeout_s: float, margin_s: float) -> None:
    """Reject a long-poll wait that could outlast the HTTP read timeout.

    Consul stretches a blocking query by up to ``wait / 16`` of random
    jitter, so that is counted against the timeout as well.
    """
    if wait_s < 1:
        # Consul reads a zero wait as its five minute default.
        raise ValueError(f"Long-poll wait must be at least 1s, got {wait_s}s.")
    if margin_s < 0:
        raise ValueError("margin must not be negative.")
    worst_case = wait_s + wait_s / 16.0 + margin_s
    if worst_case > timeout_s:
        raise ValueError(
            f"Long-poll wait of {wait_s}s needs a request timeout of at least {worst_case:g}s "
            f"(margin {margin_s}s), got {timeout_s}s."
        )


@dataclass(frozen=True)
class CatalogSnapshot:
    index: int
    services: dict[str, list[str]] = field(default_factory=dict)  # name -> tags


class CatalogClient:
    """Small client for the parts of the Consul catalog API we consume."""

    def __init__(
        self,
        address: str,
        port: int = 8500,
        *,
        wait_s: float = 50,
        timeout_s: float = 60,
        margin_s: float = 5,
        token: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        check_long_poll_budget(wait_s, timeout_s, margin_s)
        self.address = address
        self.port = int(port)
        self.wait_s = wait_s
        self.timeout_s = timeout_s
        self.margin_s = margin_s
        headers = {"X-Consul-Token": token} if token else {}
        self._http = httpx.Client(
            base_url=f"http://{address}:{self.port}",
            timeout=timeout_s,
            headers=headers,
            follow_redirects=False,
            transport=transport,
        )

    def __enter__(self) -> CatalogClient:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def _get(self, path: str, params: dict | None = None) -> httpx.Response:
        try:
            resp = self._http.get(path, params=params)
        except httpx.HTTPError as e:
            raise TransportFailure(f"{type(e).__name__}: {e}") from e
        if resp.status_code != 200:
            raise TransportFailure(f"HTTP {resp.status_code} from {path}")
        return resp

    @staticmethod
    def _index(resp: httpx.Response) -> int:
        raw = resp.headers.get("X-Consul-Index")
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise TransportFailure(f"Missing or invalid X-Consul-Index header: {raw!r}") from None

    @staticmethod
    def _json(resp: httpx.Response):
        try:
            return resp.json()
        except ValueError as e:
            raise TransportFailure(f"Invalid JSON: {e}") from e

    def _services(self, params: dict | None) -> CatalogSnapshot:
        resp = self._get("/v1/catalog/services", params)
        data = self._json(resp)
        if not isinstance(data, dict):
            raise TransportFailure(f"Unexpected service list payload: {data!r}")
        services = {str(name): list(tags or []) for name, tags in data.items()}
        return CatalogSnapshot(index=self._index(resp), services=services)

    def snapshot(self) -> CatalogSnapshot:
        """Non-blocking listing of service names plus the current index."""
        return self._services(None)

    def list_service_names(self) -> dict[str, list[str]]:
        return self.snapshot().services

    def blocking_wait(self, index: int, wait_s: float | None = None) -> tuple[int, dict[str, list[str]]]:
        """Block until the catalog index moves past *index* or the wait elapses."""
        wait_s = self.wait_s if wait_s is None else wait_s
        check_long_poll_budget(wait_s, self.timeout_s, self.margin_s)
        snap = self._services({"index": max(0, int(index)), "wait": f"{wait_s:g}s"})
        return snap.index, snap.services

    def describe(self, name: str) -> list[CatalogEntry]:
        resp = self._get(f"/v1/catalog/service/{quote(name, safe='')}")
        data = self._json(resp)
        if not isinstance(data, list):
            raise TransportFailure(f"Unexpected service description for {name!r}: {data!r}")
        try:
            return [CatalogEntry.model_validate(item) for item in data]
        except ValidationError as e:
            raise TransportFailure(f"Malformed catalog entry for {name!r}: {e}") from e

    def list_all(self, names: dict[str, list[str]] | None = None) -> list[CatalogEntry]:
        """Describe every service in *names* (default: the current listing)."""
        if names is None:
            names = self.list_service_names()
        entries: list[CatalogEntry] = []
        for name in sorted(names):
            entries.extend(self.describe(name))
        return entries
