"""Single-flight coordination for report generation.

A registry maps a :class:`ReportKey` to at most one pending generation. The
first caller for a key (the leader) runs the producer; callers arriving while
it runs (joiners) wait for the leader's outcome instead of generating again.
"""

from __future__ import annotations

import asyncio
import copy
import json
import threading
import uuid
from concurrent.futures import Future
from typing import Any, Awaitable, Callable, Protocol

import structlog
from redis import Redis, RedisError

from app.backend.src.schemas.report import ReportKey
from app.backend.src.services.report_errors import (
    GenerationFailed,
    GenerationFailureReason,
    PersistenceError,
)

LOGGER = structlog.get_logger(__name__)

Producer = Callable[[], Awaitable[dict[str, Any]]]


class InFlightRegistry(Protocol):
    async def run(self, key: ReportKey, producer: Producer) -> dict[str, Any]:
        """Run ``producer`` for ``key`` unless a run is already pending, then share its outcome."""
        ...


def _cancelled_attempt() -> GenerationFailed:
    return GenerationFailed(
        GenerationFailureReason.TRANSPORT_ERROR, "generation was cancelled before completing"
    )


class LocalInFlightRegistry:
    """Process-wide registry.

    Pending entries are ``concurrent.futures.Future`` objects so callers on
    different event loops (API workers, Celery threads) can share them.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: dict[ReportKey, Future] = {}

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    async def run(self, key: ReportKey, producer: Producer) -> dict[str, Any]:
        with self._lock:
            pending = self._pending.get(key)
            leader = pending is None
            if leader:
                pending = Future()
                # Running futures ignore cancel(), so a joiner giving up
                # never cancels the shared attempt.
                pending.set_running_or_notify_cancel()
                self._pending[key] = pending

        if not leader:
            LOGGER.info("report_generation_joined", cache_key=key.cache_key)
            try:
                content = await asyncio.wrap_future(pending)
            except GenerationFailed as exc:
                raise GenerationFailed(exc.reason, exc.detail) from exc
            # Joiners get their own copy; the leader keeps the original.
            return copy.deepcopy(content)

        try:
            content = await producer()
        except asyncio.CancelledError:
            self._release(key, pending, error=_cancelled_attempt())
            raise
        except BaseException as exc:
            self._release(key, pending, error=exc)
            raise

        self._release(key, pending, result=content)
        return content

    def _release(
        self,
        key: ReportKey,
        pending: Future,
        *,
        result: dict[str, Any] | None = None,
        error: BaseException | None = None,
    ) -> None:
        with self._lock:
            if self._pending.get(key) is pending:
                del self._pending[key]
        # Callbacks fire in the order joiners attached.
        if error is not None:
            pending.set_exception(error)
        else:
            pending.set_result(result)


def _text(raw: Any) -> str | None:
    if raw is None:
        return None
    if isinstance(raw, bytes):
        return raw.decode("utf-8")
    return str(raw)


class RedisInFlightRegistry:
    """Registry shared by every process that talks to the same Redis.

    Callers inside one process are collapsed by a local registry first; the
    process leader then claims a Redis lock. Other processes poll for the
    outcome the lock holder publishes.
    """

    def __init__(
        self,
        client: Redis,
        *,
        key_prefix: str = "report_inflight",
        outcome_prefix: str = "report_outcome",
        lock_ttl_seconds: int = 120,
        outcome_ttl_seconds: int = 60,
        poll_interval_seconds: float = 0.25,
        local: LocalInFlightRegistry | None = None,
    ) -> None:
        self.client = client
        self.key_prefix = key_prefix
        self.outcome_prefix = outcome_prefix
        self.lock_ttl_seconds = lock_ttl_seconds
        self.outcome_ttl_seconds = outcome_ttl_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self._local = local if local is not None else LocalInFlightRegistry()

    @classmethod
    def from_settings(cls, settings) -> "RedisInFlightRegistry":
        return cls(
            Redis.from_url(settings.redis_url),
            lock_ttl_seconds=settings.report_lock_ttl_seconds,
            poll_interval_seconds=settings.report_poll_interval_seconds,
        )

    def _lock_key(self, key: ReportKey) -> str:
        return f"{self.key_prefix}:{key.cache_key}"

    def _outcome_key(self, key: ReportKey) -> str:
        return f"{self.outcome_prefix}:{key.cache_key}"

    async def run(self, key: ReportKey, producer: Producer) -> dict[str, Any]:
        return await self._local.run(key, lambda: self._run_across_processes(key, producer))

    async def _run_across_processes(self, key: ReportKey, producer: Producer) -> dict[str, Any]:
        lock_key = self._lock_key(key)
        token = uuid.uuid4().hex
        try:
            while True:
                acquired = await asyncio.to_thread(
                    self.client.set, lock_key, token, nx=True, px=self.lock_ttl_seconds * 1000
                )
                if acquired:
                    break
                outcome = await self._wait_for_outcome(key)
                if outcome is not None:
                    return self._unpack(outcome)
        except RedisError as exc:
            LOGGER.warning("report_lock_unavailable", cache_key=key.cache_key, error=str(exc))
            raise PersistenceError(f"Unable to coordinate generation of {key}") from exc

        LOGGER.info("report_lock_acquired", cache_key=key.cache_key)
        try:
            content = await producer()
        except GenerationFailed as exc:
            await asyncio.to_thread(
                self._finish,
                key,
                token,
                {"status": "failed", "reason": exc.reason.value, "detail": exc.detail},
            )
            raise
        except asyncio.CancelledError:
            failure = _cancelled_attempt()
            # Shielded so a repeated cancel cannot skip the lock release.
            await asyncio.shield(
                asyncio.to_thread(
                    self._finish,
                    key,
                    token,
                    {"status": "failed", "reason": failure.reason.value, "detail": failure.detail},
                )
            )
            raise
        except Exception as exc:
            await asyncio.to_thread(self._finish, key, token, {"status": "error", "detail": str(exc)})
            raise

        await asyncio.to_thread(self._finish, key, token, {"status": "ok", "content": content})
        return content

    async def _wait_for_outcome(self, key: ReportKey) -> dict[str, Any] | None:
        """Wait for the current lock holder's outcome.

        Returns ``None`` when the lock went away without one, so the caller
        can try to claim it.
        """

        lock_key = self._lock_key(key)
        holder = _text(await asyncio.to_thread(self.client.get, lock_key))
        if holder is None:
            return None

        LOGGER.info("report_generation_awaiting_remote", cache_key=key.cache_key)
        while True:
            outcome = await asyncio.to_thread(self._read_outcome, key)
            if outcome is not None and outcome.get("token") == holder:
                return outcome

            current = _text(await asyncio.to_thread(self.client.get, lock_key))
            if current != holder:
                # The holder may have published just before releasing.
                outcome = await asyncio.to_thread(self._read_outcome, key)
                if outcome is not None and outcome.get("token") == holder:
                    return outcome
                return None

            await asyncio.sleep(self.poll_interval_seconds)

    def _read_outcome(self, key: ReportKey) -> dict[str, Any] | None:
        outcome_key = self._outcome_key(key)
        try:
            raw = self.client.get(outcome_key)
            if not raw:
                return None
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            LOGGER.warning("report_outcome_decode_failed", key=outcome_key, error=str(exc))
            return None
        return payload if isinstance(payload, dict) else None

    def _finish(self, key: ReportKey, token: str, outcome: dict[str, Any]) -> None:
        """Publish the outcome and release the lock, best effort.

        Redis failures are logged only; the caller still gets the producer's
        result. Waiting processes fall back to the lock TTL.
        """

        lock_key = self._lock_key(key)
        outcome_key = self._outcome_key(key)
        try:
            self.client.setex(
                outcome_key, self.outcome_ttl_seconds, json.dumps({**outcome, "token": token})
            )
        except RedisError as exc:
            LOGGER.warning("report_outcome_publish_failed", key=outcome_key, error=str(exc))

        try:
            if _text(self.client.get(lock_key)) == token:
                self.client.delete(lock_key)
        except RedisError as exc:
            LOGGER.warning("report_lock_release_failed", key=lock_key, error=str(exc))

    @staticmethod
    def _unpack(outcome: dict[str, Any]) -> dict[str, Any]:
        status = outcome.get("status")
        if status == "ok" and isinstance(outcome.get("content"), dict):
            return outcome["content"]
        if status == "failed":
            raise GenerationFailed(
                GenerationFailureReason(outcome.get("reason", GenerationFailureReason.UPSTREAM_ERROR)),
                str(outcome.get("detail") or ""),
            )
        raise PersistenceError(str(outcome.get("detail") or "report generation failed in another worker"))


__all__ = [
    "InFlightRegistry",
    "LocalInFlightRegistry",
    "Producer",
    "RedisInFlightRegistry",
]
