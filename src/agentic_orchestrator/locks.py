"""Per-project advisory lease so two workers do not edit one workspace at once."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class LockClient(Protocol):
    async def set(
        self, name: str, value: str, ex: int | None = None, nx: bool = False
    ) -> Any: ...

    async def get(self, name: str) -> Any: ...

    async def delete(self, *names: str) -> int: ...


def lock_key(project_id: str) -> str:
    return f"lock:project:{project_id}"


class ProjectLock:
    """Lease key with TTL, released only by the holder that took it.

    The TTL bounds how long a crashed worker can keep a project locked.
    """

    def __init__(
        self,
        redis: LockClient,
        project_id: str,
        *,
        ttl_s: int,
        wait_s: float = 30.0,
        poll_s: float = 0.5,
    ) -> None:
        self._redis = redis
        self.project_id = project_id
        self.key = lock_key(project_id)
        self.ttl_s = ttl_s
        self.wait_s = wait_s
        self.poll_s = poll_s
        self._token = uuid.uuid4().hex
        self.held = False

    async def acquire(self) -> bool:
        deadline = time.monotonic() + self.wait_s
        while True:
            if await self._redis.set(self.key, self._token, ex=self.ttl_s, nx=True):
                self.held = True
                return True
            if time.monotonic() >= deadline:
                logger.warning("project_lock event=timeout project_id=%s", self.project_id)
                return False
            await asyncio.sleep(self.poll_s)

    async def release(self) -> None:
        if not self.held:
            return
        self.held = False
        # Not atomic; a lease that expired and was re-taken in between is the
        # only case this can delete someone else's key.
        current = await self._redis.get(self.key)
        if current == self._token:
            await self._redis.delete(self.key)
