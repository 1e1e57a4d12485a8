"""User-facing API entrypoints for proxysmith."""

from collections.abc import Callable

from proxysmith.factory import proxy_factory
from proxysmith.providers import ObjectProvider
from proxysmith.runtime import Interceptor
from proxysmith.runtime import Invocation
from proxysmith.runtime import InvokeFunction
from proxysmith.runtime import Invoker


def can_proxy(*types: type) -> bool:
    """Report whether the default factory can build a proxy for ``types``.

    :param types: Requested classes.
    :returns: ``True`` when a proxy class can be built.
    """
    return proxy_factory().can_proxy(*types)


def get_proxy_class(*types: type, loader: object | None = None) -> type:
    """Return the generated class the default factory uses for ``types``.

    :param types: Requested classes; at most one may be a non-contract class.
    :param loader: Owning loader; ``default_loader()`` when omitted.
    :returns: Generated proxy class.
    :raises UnsupportedContractSet: If the contract set cannot be satisfied.
    :raises SynthesisFailure: If the class cannot be created.
    """
    return proxy_factory().get_proxy_class(*types, loader=loader)


def create_delegator_proxy(
    provider: ObjectProvider | Callable[[], object],
    *types: type,
    loader: object | None = None,
) -> object:
    """Create a proxy forwarding every call to the object ``provider`` returns.

    :param provider: Delegate provider, or zero-argument callable, consulted on every call.
    :param types: Requested classes.
    :param loader: Owning loader.
    :returns: New proxy instance.
    :raises UnsupportedContractSet: If the contract set cannot be satisfied.
    """
    return proxy_factory().create_delegator_proxy(provider, *types, loader=loader)


def create_interceptor_proxy(
    target: object | None,
    interceptor: Interceptor | Callable[[Invocation], object],
    *types: type,
    loader: object | None = None,
) -> object:
    """Create a proxy routing every call through ``interceptor`` around ``target``.

    :param target: Object reached through ``Invocation.proceed()``.
    :param interceptor: Interceptor or callable taking the invocation.
    :param types: Requested classes.
    :param loader: Owning loader.
    :returns: New proxy instance.
    :raises UnsupportedContractSet: If the contract set cannot be satisfied.
    """
    return proxy_factory().create_interceptor_proxy(target, interceptor, *types, loader=loader)


def create_invoker_proxy(
    invoker: Invoker | InvokeFunction,
    *types: type,
    loader: object | None = None,
) -> object:
    """Create a proxy answering every call with ``invoker``.

    :param invoker: Invoker or callable ``(proxy, method, arguments)``.
    :param types: Requested classes.
    :param loader: Owning loader.
    :returns: New proxy instance.
    :raises UnsupportedContractSet: If the contract set cannot be satisfied.
    """
    return proxy_factory().create_invoker_proxy(invoker, *types, loader=loader)
