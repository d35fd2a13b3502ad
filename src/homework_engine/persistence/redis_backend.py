"""Redis advisory lock backend implementing ILockBackend."""

from __future__ import annotations

import time
import uuid

import redis

from homework_engine.core.exceptions import LockError


class RedisLockBackend:
    """Production ILockBackend using SET NX PX with token-checked release."""

    def __init__(self, host: str = "localhost", port: int = 6379, db: int = 0,
                 blocking_timeout: float = 10.0, retry_interval: float = 0.05) -> None:
        self._host = host
        self._port = port
        self._db = db
        self._blocking_timeout = blocking_timeout
        self._retry_interval = retry_interval
        self._client = redis.Redis(
            host=host, port=port, db=db, decode_responses=True,
        )

    def acquire(self, key: str, ttl: int) -> str:
        token = uuid.uuid4().hex
        deadline = time.monotonic() + self._blocking_timeout
        while True:
            try:
                if self._client.set(key, token, nx=True, px=int(ttl * 1000)):
                    return token
            except Exception as exc:
                raise LockError(f"Redis SET NX failed for key={key!r}: {exc}") from exc
            if time.monotonic() >= deadline:
                raise LockError(f"Timed out waiting for lock key={key!r}")
            time.sleep(self._retry_interval)

    def release(self, key: str, token: str) -> None:
        # WATCH makes the compare-and-delete atomic against a concurrent re-acquire.
        try:
            with self._client.pipeline() as pipe:
                pipe.watch(key)
                if pipe.get(key) != token:
                    pipe.unwatch()
                    raise LockError(f"Lock key={key!r} expired or is held by another owner")
                pipe.multi()
                pipe.delete(key)
                pipe.execute()
        except LockError:
            raise
        except Exception as exc:
            raise LockError(f"Redis release failed for key={key!r}: {exc}") from exc
