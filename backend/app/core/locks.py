"""
Verrous de recalcul par clé.

Un recalcul d'agrégat quotidien lit toutes les activités d'un jour et réécrit
la ligne entière : deux recalculs concurrents sur le même (user_id, date)
doivent être sérialisés. Idem pour les métriques glissantes d'un utilisateur.

Deux implémentations :
  - RedisLockProvider : verrou distribué (redis-py Lock), pour plusieurs workers
  - LocalLockProvider : threading.Lock par clé, pour un process unique
"""
import logging
import threading
from contextlib import contextmanager
from functools import lru_cache
from typing import Dict, Iterator, Optional

import redis
from redis.exceptions import LockError

from app.core.settings import get_settings

logger = logging.getLogger(__name__)

LOCK_PREFIX = "trainload:lock"


class LockNotAcquired(Exception):
    """Le verrou n'a pas pu être obtenu dans le délai imparti."""

    def __init__(self, key: str, reason: str = "timeout"):
        self.key = key
        self.reason = reason
        super().__init__(f"Verrou {key} non obtenu ({reason})")


def day_lock_key(user_id, day) -> str:
    return f"{LOCK_PREFIX}:day:{user_id}:{day.isoformat()}"


def rolling_lock_key(user_id) -> str:
    return f"{LOCK_PREFIX}:rolling:{user_id}"


@lru_cache()
def get_redis_client() -> redis.Redis:
    """Retourne un client Redis connecté (singleton via lru_cache)."""
    settings = get_settings()
    return redis.Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )


def check_redis_health() -> bool:
    """Vérifie que Redis répond à un PING. Retourne True si OK, False sinon."""
    try:
        client = get_redis_client()
        return client.ping()
    except Exception as exc:
        logger.warning(f"Redis health check échoué: {exc}")
        return False


class LocalLockProvider:
    """Verrous en mémoire, valables pour un seul process."""

    def __init__(self, wait_s: float = 5.0):
        self.wait_s = wait_s
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _get_lock(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._get_lock(key)
        if not lock.acquire(timeout=self.wait_s):
            raise LockNotAcquired(key)
        try:
            yield
        finally:
            lock.release()


class RedisLockProvider:
    """Verrous distribués Redis (expiration automatique si le worker meurt)."""

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        timeout_s: float = 30.0,
        wait_s: float = 5.0,
    ):
        self._redis = redis_client
        self.timeout_s = timeout_s
        self.wait_s = wait_s

    def _get_redis(self) -> redis.Redis:
        """Retourne le client Redis (lazy init)."""
        if self._redis is None:
            self._redis = get_redis_client()
        return self._redis

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        try:
            lock = self._get_redis().lock(
                key, timeout=self.timeout_s, blocking_timeout=self.wait_s
            )
            acquired = lock.acquire()
        except redis.RedisError as exc:
            logger.warning(f"Redis indisponible (verrou {key}): {exc}")
            raise LockNotAcquired(key, reason="redis_unavailable") from exc

        if not acquired:
            raise LockNotAcquired(key)
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError as exc:
                # Le verrou a expiré pendant le recalcul
                logger.warning(f"Verrou {key} expiré avant libération: {exc}")


def build_lock_provider(settings=None):
    """Construit le provider de verrous selon RECOMPUTE_LOCK_BACKEND."""
    settings = settings or get_settings()
    if settings.RECOMPUTE_LOCK_BACKEND == "local":
        return LocalLockProvider(wait_s=settings.RECOMPUTE_LOCK_WAIT_S)
    return RedisLockProvider(
        timeout_s=settings.RECOMPUTE_LOCK_TIMEOUT_S,
        wait_s=settings.RECOMPUTE_LOCK_WAIT_S,
    )
