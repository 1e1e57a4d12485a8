"""Per-loader cache of generated proxy classes."""

import logging
import threading
import weakref
from collections.abc import Callable

from proxysmith.contracts import ContractSetKey

logger: logging.Logger = logging.getLogger(__name__)


class _LoaderCache:
    """Classes generated for one loader and the locks guarding their synthesis."""

    entries: dict[ContractSetKey, type]
    locks: dict[ContractSetKey, threading.Lock]
    lock_users: dict[ContractSetKey, int]

    def __init__(self) -> None:
        """Initialize an empty loader cache."""
        self.entries = {}
        self.locks = {}
        self.lock_users = {}

    def acquire_key_lock(self, key: ContractSetKey) -> threading.Lock:
        """Return the synthesis lock of ``key`` and register one more user of it.

        Callers must hold the owning cache's lock.

        :param key: Normalized key.
        :returns: Lock shared by every caller currently building ``key``.
        """
        key_lock: threading.Lock | None = self.locks.get(key)
        if key_lock is None:
            key_lock = threading.Lock()
            self.locks[key] = key_lock
        self.lock_users[key] = self.lock_users.get(key, 0) + 1
        return key_lock

    def release_key_lock(self, key: ContractSetKey) -> None:
        """Unregister one user of ``key``'s lock, dropping the lock after the last one.

        Callers must hold the owning cache's lock.

        :param key: Normalized key.
        """
        remaining: int = self.lock_users.get(key, 1) - 1
        if remaining > 0:
            self.lock_users[key] = remaining
            return
        self.lock_users.pop(key, None)
        self.locks.pop(key, None)


class ProxyClassCache:
    """Memoize generated proxy classes by ``(loader, contract set)``.

    Loaders are held weakly: once a loader is collected its sub-cache, and
    every class generated for it, becomes unreachable from here. Synthesis
    for one key runs under that key's own lock, so callers racing on the same
    key wait for the first synthesis while unrelated keys proceed.
    """

    _lock: threading.Lock
    _by_loader: "weakref.WeakKeyDictionary[object, _LoaderCache]"

    def __init__(self) -> None:
        """Initialize an empty cache."""
        self._lock = threading.Lock()
        self._by_loader = weakref.WeakKeyDictionary()

    def _loader_cache(self, key: ContractSetKey) -> _LoaderCache:
        """Return the sub-cache of ``key``'s loader, creating it on first use.

        Callers must hold ``self._lock``.

        :param key: Normalized key.
        :returns: Loader sub-cache.
        :raises ReferenceError: If the key's loader has been collected.
        """
        loader: object | None = key.loader
        if loader is None:
            raise ReferenceError(f"Loader for proxy contracts ({key.describe()}) no longer exists")
        loader_cache: _LoaderCache | None = self._by_loader.get(loader)
        if loader_cache is None:
            loader_cache = _LoaderCache()
            self._by_loader[loader] = loader_cache
        return loader_cache

    def get(self, key: ContractSetKey) -> type | None:
        """Return the cached class for ``key`` without building it.

        :param key: Normalized key.
        :returns: Cached class or ``None``.
        """
        with self._lock:
            loader: object | None = key.loader
            if loader is None:
                return None
            loader_cache: _LoaderCache | None = self._by_loader.get(loader)
            if loader_cache is None:
                return None
            return loader_cache.entries.get(key)

    def get_or_build(self, key: ContractSetKey, synthesize: Callable[[ContractSetKey], type]) -> type:
        """Return the class for ``key``, synthesizing it at most once.

        :param key: Normalized key.
        :param synthesize: Builder invoked on a cache miss.
        :returns: The one class generated for ``key``.
        :raises ReferenceError: If the key's loader has been collected.
        :raises Exception: Whatever ``synthesize`` raises; nothing is cached then.
        """
        with self._lock:
            loader_cache: _LoaderCache = self._loader_cache(key)
            existing: type | None = loader_cache.entries.get(key)
            if existing is not None:
                return existing
            key_lock: threading.Lock = loader_cache.acquire_key_lock(key)

        try:
            with key_lock:
                with self._lock:
                    existing = loader_cache.entries.get(key)
                if existing is not None:
                    return existing

                logger.debug("Synthesizing proxy class for (%s)", key.describe())
                try:
                    proxy_class: type = synthesize(key)
                except Exception:
                    logger.warning("Proxy class synthesis failed for (%s)", key.describe())
                    raise

                with self._lock:
                    loader_cache.entries[key] = proxy_class
                logger.debug("Cached proxy class %s", proxy_class.__qualname__)
                return proxy_class
        finally:
            with self._lock:
                loader_cache.release_key_lock(key)

    def size(self, loader: object) -> int:
        """Return how many classes are cached for ``loader``.

        :param loader: Loader object.
        :returns: Cached class count.
        """
        with self._lock:
            loader_cache: _LoaderCache | None = self._by_loader.get(loader)
            if loader_cache is None:
                return 0
            return len(loader_cache.entries)

    def clear(self) -> None:
        """Drop every cached class."""
        with self._lock:
            self._by_loader.clear()
