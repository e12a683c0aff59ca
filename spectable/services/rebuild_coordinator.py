"""Serializes and debounces lookup rebuilds per shop.

Bursts of mutations (several target inserts in one user action, a flurry of
webhooks) each ask for a rebuild. Only one rebuild may execute per shop at a
time. The first request that finds the shop busy waits a short delay and
re-submits once, blocking on the shop lock; requests arriving meanwhile join
that single follow-up rebuild instead of stacking their own. After a
rebuild the shop stays locked for a short cooldown so a dependent writer can
finish before the index is invalidated again.

Correctness does not depend on any of this: every rebuild fully replaces the
shop's index.
"""

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any

import redis
from redis.exceptions import LockError
from sqlalchemy.orm import Session

from spectable.config import Settings, get_settings
from spectable.database import SessionLocal
from spectable.models.enums import RebuildState
from spectable.models.shop import Shop
from spectable.services.template_lookup import TemplateLookupBuilder

logger = logging.getLogger(__name__)

# Must outlive the longest rebuild (matches the Celery hard time limit)
REDIS_LOCK_TTL_SECONDS = 600
REDIS_LOCK_PREFIX = "template-lookup:rebuild:"


class RebuildLockTimeout(TimeoutError):
    """The shop lock could not be acquired after the debounced re-submission."""


class KeyedLock:
    """Mutual exclusion keyed by an arbitrary string."""

    def acquire(self, key: str, blocking: bool = True, timeout: float | None = None) -> bool:
        raise NotImplementedError

    def release(self, key: str) -> None:
        raise NotImplementedError


class LocalKeyedLock(KeyedLock):
    """Process-local keyed lock. Only valid for a single worker process."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._users: dict[str, int] = {}

    def acquire(self, key: str, blocking: bool = True, timeout: float | None = None) -> bool:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] = self._users.get(key, 0) + 1

        if not blocking:
            acquired = lock.acquire(blocking=False)
        else:
            acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            self._forget(key)
        return acquired

    def release(self, key: str) -> None:
        # threading.Lock may be released from the cooldown timer thread
        with self._guard:
            lock = self._locks[key]
        lock.release()
        self._forget(key)

    def _forget(self, key: str) -> None:
        # Entries live only while a holder or waiter references them
        with self._guard:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


class RedisKeyedLock(KeyedLock):
    """Keyed lock shared by every process connected to the same Redis."""

    def __init__(self, client: redis.Redis | None = None, ttl: float = REDIS_LOCK_TTL_SECONDS):
        self._client = client
        self._ttl = ttl
        self._guard = threading.Lock()
        self._held: dict[str, Any] = {}

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(get_settings().redis_url)
        return self._client

    def acquire(self, key: str, blocking: bool = True, timeout: float | None = None) -> bool:
        lock = self._get_client().lock(
            f"{REDIS_LOCK_PREFIX}{key}", timeout=self._ttl, thread_local=False
        )
        acquired = lock.acquire(blocking=blocking, blocking_timeout=timeout)
        if acquired:
            with self._guard:
                self._held[key] = lock
        return bool(acquired)

    def release(self, key: str) -> None:
        with self._guard:
            lock = self._held.pop(key, None)
        if lock is None:
            return
        try:
            lock.release()
        except LockError as e:
            # Expired via TTL; another owner may hold it now
            logger.warning(f"Rebuild lock {key} was no longer owned on release: {e}")


def build_keyed_lock(settings: Settings | None = None) -> KeyedLock:
    """Create the keyed lock configured by rebuild_lock_backend."""
    settings = settings or get_settings()
    if settings.rebuild_lock_backend == "redis":
        return RedisKeyedLock()
    return LocalKeyedLock()


class RebuildCoordinator:
    """Runs lookup rebuilds with per-shop mutual exclusion, debounce and cooldown."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        lock: KeyedLock | None = None,
        builder_factory: Callable[[Session], TemplateLookupBuilder] = TemplateLookupBuilder,
        retry_delay: float | None = None,
        cooldown: float | None = None,
        lock_timeout: float | None = None,
    ):
        settings = get_settings()
        self.session_factory = session_factory
        self.lock = lock or build_keyed_lock(settings)
        self.builder_factory = builder_factory
        self.retry_delay = (
            settings.rebuild_retry_delay_ms / 1000 if retry_delay is None else retry_delay
        )
        self.cooldown = settings.rebuild_cooldown_ms / 1000 if cooldown is None else cooldown
        self.lock_timeout = (
            settings.rebuild_lock_timeout_seconds if lock_timeout is None else lock_timeout
        )
        self._states: dict[int, RebuildState] = {}
        self._pending: dict[int, Future] = {}
        self._healed: set[int] = set()
        self._state_guard = threading.Lock()

    def state(self, shop_id: int) -> RebuildState:
        """Current state of the shop as seen by this process."""
        with self._state_guard:
            return self._states.get(shop_id, RebuildState.IDLE)

    def _set_state(self, shop_id: int, state: RebuildState) -> None:
        with self._state_guard:
            if state == RebuildState.IDLE:
                self._states.pop(shop_id, None)
            else:
                self._states[shop_id] = state

    def heal(self, shop_id: int) -> dict[str, int] | None:
        """Rebuild for a reader that found the shop's index unexpectedly empty.

        Never waits: returns None when the shop is busy. Runs at most once
        per shop until a regular rebuild is scheduled again, so an index that
        is legitimately empty does not cost a rebuild on every read.
        """
        with self._state_guard:
            if shop_id in self._healed:
                return None

        if not self.lock.acquire(str(shop_id), blocking=False):
            logger.debug(f"Shop {shop_id}: busy, skipping self-heal rebuild")
            return None

        with self._state_guard:
            self._healed.add(shop_id)
        return self._execute(shop_id)

    def schedule_rebuild(self, shop_id: int) -> dict[str, int]:
        """Rebuild a shop's lookup index, collapsing concurrent requests.

        If the shop is idle the rebuild runs immediately. Otherwise the first
        waiting request becomes the follow-up rebuild: it sleeps retry_delay,
        then blocks on the shop lock. Requests arriving while that follow-up
        is still waiting join it and receive its result.

        Raises:
            RebuildLockTimeout: the shop stayed busy past lock_timeout
        """
        with self._state_guard:
            self._healed.discard(shop_id)

        key = str(shop_id)
        if self.lock.acquire(key, blocking=False):
            return self._execute(shop_id)

        with self._state_guard:
            pending = self._pending.get(shop_id)
            if pending is not None:
                joined = True
            else:
                pending = self._pending[shop_id] = Future()
                joined = False

        if joined:
            logger.debug(f"Shop {shop_id}: joining pending rebuild")
            return pending.result()

        logger.info(
            f"Rebuild already in progress for shop {shop_id}, "
            f"retrying in {self.retry_delay * 1000:.0f}ms"
        )
        try:
            time.sleep(self.retry_delay)
            if not self.lock.acquire(key, blocking=True, timeout=self.lock_timeout):
                raise RebuildLockTimeout(
                    f"Timed out after {self.lock_timeout}s waiting to rebuild shop {shop_id}"
                )
            # Requests from here on need a newer rebuild than this one
            self._release_pending(shop_id, pending)
            result = self._execute(shop_id)
        except BaseException as e:
            self._release_pending(shop_id, pending)
            pending.set_exception(e)
            raise

        pending.set_result(result)
        return result

    def _release_pending(self, shop_id: int, pending: Future) -> None:
        with self._state_guard:
            if self._pending.get(shop_id) is pending:
                del self._pending[shop_id]

    def _execute(self, shop_id: int) -> dict[str, int]:
        self._set_state(shop_id, RebuildState.REBUILDING)
        try:
            return self._run(shop_id)
        finally:
            self._enter_cooldown(shop_id)

    def _run(self, shop_id: int) -> dict[str, int]:
        db = self.session_factory()
        try:
            started = time.monotonic()
            result = self.builder_factory(db).rebuild(shop_id)
            logger.info(
                f"Rebuilt lookup for shop {shop_id}: {result['rebuilt']} rows "
                f"in {(time.monotonic() - started) * 1000:.0f}ms"
            )
            return result
        finally:
            db.close()

    def _enter_cooldown(self, shop_id: int) -> None:
        if self.cooldown <= 0:
            self._finish(shop_id)
            return

        self._set_state(shop_id, RebuildState.COOLDOWN)
        timer = threading.Timer(self.cooldown, self._finish, args=(shop_id,))
        timer.daemon = True
        timer.start()

    def _finish(self, shop_id: int) -> None:
        self._set_state(shop_id, RebuildState.IDLE)
        self.lock.release(str(shop_id))


_coordinator: RebuildCoordinator | None = None
_coordinator_guard = threading.Lock()


def get_rebuild_coordinator() -> RebuildCoordinator:
    """Get the process-wide rebuild coordinator."""
    global _coordinator
    with _coordinator_guard:
        if _coordinator is None:
            _coordinator = RebuildCoordinator()
        return _coordinator


def rebuild_template_lookup(
    shop_id: int, coordinator: RebuildCoordinator | None = None
) -> dict[str, int]:
    """Rebuild one shop's lookup index. Call after any template/assignment/target change."""
    return (coordinator or get_rebuild_coordinator()).schedule_rebuild(shop_id)


def rebuild_all_template_lookups(
    coordinator: RebuildCoordinator | None = None,
) -> list[dict[str, Any]]:
    """Rebuild every shop's lookup index, reporting each shop independently."""
    coordinator = coordinator or get_rebuild_coordinator()

    db = coordinator.session_factory()
    try:
        shops = [(shop.id, shop.shop_domain) for shop in db.query(Shop).order_by(Shop.id).all()]
    finally:
        db.close()

    results: list[dict[str, Any]] = []
    for shop_id, shop_domain in shops:
        try:
            result = coordinator.schedule_rebuild(shop_id)
            results.append(
                {
                    "shop_id": shop_id,
                    "shop_domain": shop_domain,
                    "rebuilt": result["rebuilt"],
                    "success": True,
                }
            )
        except Exception as e:
            logger.error(f"Lookup rebuild failed for shop {shop_domain}: {e}", exc_info=True)
            results.append(
                {
                    "shop_id": shop_id,
                    "shop_domain": shop_domain,
                    "error": str(e),
                    "success": False,
                }
            )

    succeeded = sum(1 for r in results if r["success"])
    logger.info(f"Rebuilt lookups for {succeeded}/{len(results)} shops")
    return results
