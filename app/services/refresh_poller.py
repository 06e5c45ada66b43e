# app/services/refresh_poller.py
"""
Refresh poller — periodically re-reads the dispatch list endpoints.

There is no push channel: dashboards and the requester's status page poll on
a fixed interval (POLL_INTERVAL_SECONDS, 30s by default) and must tolerate
state up to one interval stale. This is the client side of that loop, used
by scripts/test/watch_dispatch.py and by anything else that wants the same view.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional, Union
import httpx
from app.config import settings
from app.utils.logger import get_logger

logger = get_logger(__name__)

# Reconnect delay in seconds (doubles on each failure, max 60s)
_MIN_BACKOFF = 3
_MAX_BACKOFF = 60

ADMIN_PATHS = ("/api/v1/ambulance/requests", "/api/v1/ambulance/drivers")
REQUESTER_PATHS = ("/api/v1/ambulance/requests/user",)


@dataclass
class DispatchSnapshot:
    """One poll's worth of data, keyed by endpoint path."""
    fetched_at: datetime
    data: dict = field(default_factory=dict)
    errors: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


SnapshotCallback = Callable[[DispatchSnapshot], Union[None, Awaitable[None]]]


async def fetch_snapshot(client: httpx.AsyncClient, paths) -> DispatchSnapshot:
    """GET every path once. HTTP errors are recorded per path; transport errors propagate."""
    snapshot = DispatchSnapshot(fetched_at=datetime.utcnow())
    for path in paths:
        response = await client.get(path)
        if response.status_code != 200:
            snapshot.errors[path] = f"http_{response.status_code}"
            logger.warning(f"⚠️  {path} returned HTTP {response.status_code}")
            continue
        snapshot.data[path] = response.json()
    return snapshot


async def poll_dispatch_state(
    base_url: str,
    on_snapshot: SnapshotCallback,
    headers: Optional[dict] = None,
    paths=ADMIN_PATHS,
    interval: Optional[float] = None,
    max_polls: Optional[int] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    """
    Poll `paths` every `interval` seconds and hand each snapshot to
    `on_snapshot`. Any failure (unreachable server, bad body, failing
    callback) is logged and backed off without ending the loop. Runs forever
    unless `max_polls` is given; returns the number of snapshots delivered.
    """
    interval = settings.POLL_INTERVAL_SECONDS if interval is None else interval
    backoff = _MIN_BACKOFF
    delivered = 0
    attempts = 0

    async with httpx.AsyncClient(base_url=base_url, headers=headers or {}, timeout=10.0,
                                 transport=transport) as client:
        while max_polls is None or attempts < max_polls:
            attempts += 1
            try:
                snapshot = await fetch_snapshot(client, paths)
                result = on_snapshot(snapshot)
                if asyncio.iscoroutine(result):
                    await result
            except httpx.TransportError as e:
                logger.warning(f"❌ {base_url} unreachable ({e.__class__.__name__}). Retry in {backoff}s")
            except Exception as e:
                logger.error(f"❌ {base_url} poll failed: {e}", exc_info=True)
            else:
                backoff = _MIN_BACKOFF
                delivered += 1
                if max_polls is None or attempts < max_polls:
                    await asyncio.sleep(interval)
                continue

            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, _MAX_BACKOFF)

    return delivered
