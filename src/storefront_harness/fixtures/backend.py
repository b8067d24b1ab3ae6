"""Fixture backends: where seeded records go.

The :class:`FixtureBackend` protocol is the contract the factory provider
depends on. ``InMemoryFixtureBackend`` keeps records in dicts (unit tests,
dry runs); ``HttpFixtureBackend`` talks to the storefront's test-only seed
API:

    POST   {prefix}/reset
    PUT    {prefix}/config                 {pref: value}
    POST   {prefix}/records/{kind}         record payload
    PATCH  {prefix}/records/{kind}/{id}    partial payload
    PATCH  {prefix}/records/{kind}         {"where": {...}, "values": {...}}
    GET    {prefix}/records/{kind}?field=value
"""

from __future__ import annotations

import itertools
from typing import Any, Mapping, Protocol, runtime_checkable

import httpx

from ..errors import FixtureError, RecordNotFound
from ..observability import get_logger

log = get_logger(__name__)

Payload = dict[str, Any]


@runtime_checkable
class FixtureBackend(Protocol):
    """Record storage used to seed the storefront."""

    async def reset(self) -> None: ...
    async def configure(self, **prefs: Any) -> dict[str, Any]: ...
    async def create(self, kind: str, payload: Payload) -> Payload: ...
    async def update(self, kind: str, record_id: int, payload: Payload) -> Payload: ...
    async def update_all(self, kind: str, where: Mapping[str, Any], payload: Payload) -> int: ...
    async def all(self, kind: str, **where: Any) -> list[Payload]: ...
    async def find(self, kind: str, **where: Any) -> Payload: ...


def _matches(record: Payload, where: Mapping[str, Any]) -> bool:
    return all(_loose_eq(record.get(k), v) for k, v in where.items())


def _loose_eq(actual: Any, expected: Any) -> bool:
    if actual == expected:
        return True
    # Query-string filters arrive as strings.
    return actual is not None and str(actual) == str(expected)


# ── In-memory ──────────────────────────────────────────────────────


class InMemoryFixtureBackend:
    """Dict-backed backend; ids are per-kind sequences starting at 1."""

    def __init__(self) -> None:
        self._records: dict[str, dict[int, Payload]] = {}
        self._ids: dict[str, itertools.count] = {}
        self.prefs: dict[str, Any] = {}

    async def reset(self) -> None:
        self._records.clear()
        self._ids.clear()
        self.prefs.clear()

    async def configure(self, **prefs: Any) -> dict[str, Any]:
        self.prefs.update(prefs)
        return dict(self.prefs)

    async def create(self, kind: str, payload: Payload) -> Payload:
        counter = self._ids.setdefault(kind, itertools.count(1))
        record = {**payload, 'id': next(counter)}
        self._records.setdefault(kind, {})[record['id']] = record
        return dict(record)

    async def update(self, kind: str, record_id: int, payload: Payload) -> Payload:
        record = self._records.get(kind, {}).get(record_id)
        if record is None:
            raise RecordNotFound(f'No {kind} with id {record_id}', kind=kind, status_code=404)
        record.update({k: v for k, v in payload.items() if k != 'id'})
        return dict(record)

    async def update_all(self, kind: str, where: Mapping[str, Any], payload: Payload) -> int:
        updated = 0
        for record in self._records.get(kind, {}).values():
            if _matches(record, where):
                record.update({k: v for k, v in payload.items() if k != 'id'})
                updated += 1
        return updated

    async def all(self, kind: str, **where: Any) -> list[Payload]:
        return [
            dict(r) for r in self._records.get(kind, {}).values()
            if _matches(r, where)
        ]

    async def find(self, kind: str, **where: Any) -> Payload:
        records = await self.all(kind, **where)
        if not records:
            raise RecordNotFound(f'No {kind} matching {where!r}', kind=kind, status_code=404)
        return records[0]


# ── Seed API over HTTP ─────────────────────────────────────────────


class HttpFixtureBackend:
    """Backend speaking the storefront's seed API.

    Args:
        base_url: Storefront base URL.
        prefix: Seed API path prefix.
        client: Optional httpx.AsyncClient (for test injection).
        timeout_seconds: Per-request timeout.
    """

    def __init__(
        self,
        base_url: str,
        *,
        prefix: str = '/__harness__',
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._root = f'{base_url.rstrip("/")}{prefix.rstrip("/")}'
        self._client = client
        self._owns_client = client is None
        self._timeout_seconds = float(timeout_seconds)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        kind: str | None = None,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        url = f'{self._root}{path}'
        try:
            resp = await self.client.request(
                method,
                url,
                json=json,
                params=params,
                timeout=self._timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise FixtureError(f'{type(exc).__name__}: {exc}', kind=kind) from exc

        self._raise_for_error(resp, kind)
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    @staticmethod
    def _raise_for_error(resp: httpx.Response, kind: str | None) -> None:
        if resp.status_code < 400:
            return

        message = resp.text
        try:
            payload = resp.json()
            if isinstance(payload, dict):
                message = payload.get('detail') or payload.get('message') or message
        except ValueError:
            pass

        err_cls = RecordNotFound if resp.status_code == 404 else FixtureError
        raise err_cls(str(message), kind=kind, status_code=resp.status_code)

    async def reset(self) -> None:
        await self._request('POST', '/reset')
        log.info('fixture_reset', backend='http')

    async def configure(self, **prefs: Any) -> dict[str, Any]:
        return await self._request('PUT', '/config', json=prefs) or {}

    async def create(self, kind: str, payload: Payload) -> Payload:
        return await self._request('POST', f'/records/{kind}', kind=kind, json=payload)

    async def update(self, kind: str, record_id: int, payload: Payload) -> Payload:
        return await self._request(
            'PATCH', f'/records/{kind}/{record_id}', kind=kind, json=payload,
        )

    async def update_all(self, kind: str, where: Mapping[str, Any], payload: Payload) -> int:
        body = await self._request(
            'PATCH',
            f'/records/{kind}',
            kind=kind,
            json={'where': dict(where), 'values': payload},
        )
        return int((body or {}).get('updated', 0))

    async def all(self, kind: str, **where: Any) -> list[Payload]:
        params = {k: _param(v) for k, v in where.items()}
        body = await self._request('GET', f'/records/{kind}', kind=kind, params=params)
        if not isinstance(body, list):
            raise FixtureError('expected list response', kind=kind)
        return body

    async def find(self, kind: str, **where: Any) -> Payload:
        records = await self.all(kind, **where)
        if not records:
            raise RecordNotFound(f'No {kind} matching {where!r}', kind=kind, status_code=404)
        return records[0]


def _param(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)
