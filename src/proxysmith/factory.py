"""Proxy factory: normalize, look up or synthesize, then instantiate."""

from collections.abc import Callable

from proxysmith.builder import build_proxy_class
from proxysmith.cache import ProxyClassCache
from proxysmith.contracts import ContractSetKey
from proxysmith.contracts import normalize_contracts
from proxysmith.errors import ProxyError
from proxysmith.providers import ObjectProvider
from proxysmith.runtime import DelegatorHandler
from proxysmith.runtime import Interceptor
from proxysmith.runtime import InterceptorHandler
from proxysmith.runtime import Invocation
from proxysmith.runtime import InvokeFunction
from proxysmith.runtime import Invoker
from proxysmith.runtime import InvokerHandler

_SHARED_CACHE: ProxyClassCache = ProxyClassCache()


class ProxyFactory:
    """Create proxy instances for contract sets.

    Factories sharing a cache share generated classes. Unless given their own
    cache, all factories use the process-wide one.
    """

    _cache: ProxyClassCache
    _loader: object | None

    def __init__(self, cache: ProxyClassCache | None = None, loader: object | None = None) -> None:
        """Initialize a factory.

        :param cache: Class cache; the process-wide cache when omitted.
        :param loader: Loader used when calls pass none; ``default_loader()`` when omitted.
        :raises TypeError: If ``cache`` is not a ``ProxyClassCache``.
        """
        if cache is None:
            cache = _SHARED_CACHE
        if isinstance(cache, ProxyClassCache) is False:
            raise TypeError(f"cache must be a ProxyClassCache, got {type(cache).__name__}")
        self._cache = cache
        self._loader = loader

    @property
    def cache(self) -> ProxyClassCache:
        """Return the class cache.

        :returns: Cache.
        """
        return self._cache

    def _key(self, types: tuple[type, ...], loader: object | None) -> ContractSetKey:
        """Normalize ``types`` for this factory.

        :param types: Requested classes.
        :param loader: Loader override; the factory loader when ``None``.
        :returns: Normalized key.
        :raises ValueError: If no class is requested.
        """
        if len(types) == 0:
            raise ValueError("At least one proxy contract is required")
        return normalize_contracts(types, self._loader if loader is None else loader)

    def can_proxy(self, *types: type) -> bool:
        """Report whether a proxy class can be built for ``types``.

        :param types: Requested classes.
        :returns: ``True`` when normalization and synthesis succeed.
        """
        try:
            self.get_proxy_class(*types)
        except (ProxyError, TypeError, ValueError):
            return False
        return True

    def get_proxy_class(self, *types: type, loader: object | None = None) -> type:
        """Return the generated class for ``types``, synthesizing it once.

        :param types: Requested classes; at most one may be a non-contract class.
        :param loader: Owning loader; the factory's loader when omitted.
        :returns: Generated proxy class.
        :raises UnsupportedContractSet: If the contract set cannot be satisfied.
        :raises SynthesisFailure: If the class cannot be created.
        :raises TypeError: If an entry is not a class.
        :raises ValueError: If ``types`` is empty.
        """
        key: ContractSetKey = self._key(types, loader)
        return self._cache.get_or_build(key, build_proxy_class)

    def create_delegator_proxy(
        self,
        provider: ObjectProvider | Callable[[], object],
        *types: type,
        loader: object | None = None,
    ) -> object:
        """Create a proxy forwarding every call to ``provider.get()``.

        :param provider: Delegate provider, consulted on every call.
        :param types: Requested classes.
        :param loader: Owning loader.
        :returns: New proxy instance.
        """
        handler: DelegatorHandler = DelegatorHandler(provider)
        return self.get_proxy_class(*types, loader=loader)(handler)

    def create_interceptor_proxy(
        self,
        target: object | None,
        interceptor: Interceptor | Callable[[Invocation], object],
        *types: type,
        loader: object | None = None,
    ) -> object:
        """Create a proxy routing every call through ``interceptor``.

        :param target: Object reached by ``Invocation.proceed()``; may be ``None``.
        :param interceptor: Interceptor or callable taking the invocation.
        :param types: Requested classes.
        :param loader: Owning loader.
        :returns: New proxy instance.
        """
        handler: InterceptorHandler = InterceptorHandler(target, interceptor)
        return self.get_proxy_class(*types, loader=loader)(handler)

    def create_invoker_proxy(
        self,
        invoker: Invoker | InvokeFunction,
        *types: type,
        loader: object | None = None,
    ) -> object:
        """Create a proxy answering every call with ``invoker``.

        :param invoker: Invoker or callable ``(proxy, method, arguments)``.
        :param types: Requested classes.
        :param loader: Owning loader.
        :returns: New proxy instance.
        """
        handler: InvokerHandler = InvokerHandler(invoker)
        return self.get_proxy_class(*types, loader=loader)(handler)


_DEFAULT_FACTORY: ProxyFactory = ProxyFactory()


def proxy_factory() -> ProxyFactory:
    """Return the process-wide factory used by the module-level helpers.

    :returns: Default factory.
    """
    return _DEFAULT_FACTORY
