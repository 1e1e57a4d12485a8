"""Proxy class synthesis: generated classes and their forwarding methods."""

import itertools
import logging
import types
from collections.abc import Callable
from typing import Any

from proxysmith.contracts import ContractSetKey
from proxysmith.contracts import implementation_methods
from proxysmith.contracts import loader_name
from proxysmith.errors import ProxyError
from proxysmith.errors import SynthesisFailure
from proxysmith.errors import TargetInvocationFailure
from proxysmith.errors import UndeclaredDispatchFailure
from proxysmith.methods import RAISES_ATTR
from proxysmith.methods import MethodDescriptor
from proxysmith.runtime import Invoker

logger: logging.Logger = logging.getLogger(__name__)

HANDLER_ATTR: str = "_proxysmith_handler"
PROXY_KEY_ATTR: str = "_proxysmith_key"
PROXIED_METHOD_ATTR: str = "_proxysmith_method"
UNCHECKED_EXCEPTIONS: tuple[type[BaseException], ...] = (
    TypeError,
    ValueError,
    AttributeError,
    LookupError,
    ArithmeticError,
    AssertionError,
    RuntimeError,
    ProxyError,
)
_PROXY_SEQUENCE: "itertools.count[int]" = itertools.count(1)


def is_unchecked(exception: BaseException) -> bool:
    """Report whether ``exception`` passes tunnelling without being declared.

    :param exception: Exception raised during dispatch.
    :returns: ``True`` for programming-error exceptions, proxysmith errors, and
        ``BaseException`` subclasses outside ``Exception``.
    """
    if isinstance(exception, Exception) is False:
        return True
    return isinstance(exception, UNCHECKED_EXCEPTIONS)


def tunneled(method: MethodDescriptor, cause: BaseException) -> BaseException:
    """Select the exception a proxy method raises for a failed dispatch.

    :param method: Method whose call failed.
    :param cause: Underlying exception.
    :returns: ``cause`` itself when its exact type is declared or it is unchecked,
        otherwise an ``UndeclaredDispatchFailure`` chained to it.
    """
    if method.declares(cause) is True:
        return cause
    if is_unchecked(cause) is True:
        return cause
    failure: UndeclaredDispatchFailure = UndeclaredDispatchFailure(cause, method.qualified_name)
    failure.__cause__ = cause
    return failure


def _build_forwarder(method: MethodDescriptor, proxy_qualname: str, module_name: str) -> Callable[..., object]:
    """Build the forwarding function installed for ``method``.

    :param method: Method to forward.
    :param proxy_qualname: Qualified name of the generated class.
    :param module_name: Module name reported by the generated class.
    :returns: Function marshaling the call, dispatching it, and unmarshaling the result.
    """

    def forward(proxy: object, /, *args: object, **kwargs: object) -> object:
        arguments: list[object] = method.marshal(args, kwargs)
        handler: Invoker = object.__getattribute__(proxy, HANDLER_ATTR)
        try:
            result: object = handler.invoke(proxy, method, arguments)
        except TargetInvocationFailure as failure:
            cause: BaseException = failure.cause
        else:
            return method.unmarshal(result)
        raise tunneled(method, cause)

    forward.__name__ = method.name
    forward.__qualname__ = f"{proxy_qualname}.{method.name}"
    forward.__module__ = module_name
    forward.__doc__ = method.function.__doc__
    setattr(forward, "__signature__", method.signature)
    setattr(forward, RAISES_ATTR, method.exception_types)
    setattr(forward, PROXIED_METHOD_ATTR, method)
    return forward


def _build_initializer(base_type: type | None, proxy_qualname: str) -> Callable[[object, Invoker], None]:
    """Build the generated ``__init__`` binding the handler slot.

    :param base_type: Optional base class whose zero-argument constructor runs after binding.
    :param proxy_qualname: Qualified name of the generated class.
    :returns: Initializer function.
    """

    def __init__(proxy: object, handler: Invoker) -> None:
        object.__setattr__(proxy, HANDLER_ATTR, handler)
        if base_type is not None:
            base_type.__init__(proxy)

    __init__.__qualname__ = f"{proxy_qualname}.__init__"
    return __init__


def _build_allocator(base_type: type) -> Callable[..., object]:
    """Build a ``__new__`` that calls the base allocator without the handler.

    :param base_type: Base class defining its own ``__new__``.
    :returns: Allocator function.
    """
    base_new: Callable[..., object] = base_type.__new__

    def __new__(cls: type, handler: Invoker) -> object:
        _ = handler
        return base_new(cls)

    return __new__


def _identity_eq(proxy: object, other: object) -> bool:
    """Compare proxies by reference.

    :param proxy: Proxy instance.
    :param other: Comparator value.
    :returns: ``True`` only for the very same object.
    """
    return proxy is other


def _base_overrides(base_type: type | None, name: str) -> bool:
    """Report whether ``base_type`` concretely overrides ``object``'s ``name``.

    :param base_type: Optional base class.
    :param name: Attribute name, ``__eq__`` or ``__hash__``.
    :returns: ``True`` when the base class supplies its own implementation.
    """
    if base_type is None:
        return False
    resolved: object = getattr(base_type, name)
    if resolved is getattr(object, name):
        return False
    return getattr(resolved, "__isabstractmethod__", False) is not True


def _class_name(key: ContractSetKey) -> str:
    """Return a fresh class name derived from the key's leading class.

    :param key: Normalized key.
    :returns: Name such as ``EchoProxy3``.
    """
    lead: type = key.bases[0]
    return f"{lead.__name__}Proxy{next(_PROXY_SEQUENCE)}"


def _class_bases(key: ContractSetKey) -> tuple[type, ...]:
    """Return the key's bases without those another base already inherits.

    A contract listed before one of its own sub-contracts would otherwise make
    the method resolution order inconsistent.

    :param key: Normalized key.
    :returns: Bases to create the proxy class from, in request order.
    """
    requested: tuple[type, ...] = key.bases
    kept: list[type] = []
    for candidate in requested:
        inherited: bool = any(
            other is not candidate and candidate in other.__mro__ for other in requested
        )
        if inherited is False:
            kept.append(candidate)
    return tuple(kept)


def build_proxy_class(key: ContractSetKey) -> type:
    """Synthesize a proxy class for a normalized contract set.

    The class derives from the key's base class (when present) and every
    contract, holds its handler in one slot bound by ``__init__(handler)``,
    forwards every merged method through the handler, and implements
    ``__eq__``/``__hash__`` by identity unless the base class overrides them.

    :param key: Normalized key.
    :returns: Generated class.
    :raises UnsupportedContractSet: If the contract methods cannot be merged.
    :raises SynthesisFailure: If the class cannot be created or would stay abstract.
    """
    methods: tuple[MethodDescriptor, ...] = implementation_methods(key.base_type, key.contracts)
    name: str = _class_name(key)
    module_name: str = loader_name(key.loader)

    namespace: dict[str, Any] = {
        "__module__": module_name,
        "__qualname__": name,
        "__doc__": f"Proxy class for ({key.describe()}).",
        PROXY_KEY_ATTR: key,
        "__init__": _build_initializer(key.base_type, name),
    }
    if key.base_type is not None and key.base_type.__new__ is not object.__new__:
        namespace["__new__"] = _build_allocator(key.base_type)
    overrides_eq: bool = _base_overrides(key.base_type, "__eq__")
    overrides_hash: bool = _base_overrides(key.base_type, "__hash__")
    if overrides_eq is False:
        namespace["__eq__"] = _identity_eq
    if overrides_hash is False:
        namespace["__hash__"] = object.__hash__
    elif overrides_eq is False:
        # a class body defining __eq__ alone gets __hash__ = None
        namespace["__hash__"] = getattr(key.base_type, "__hash__")
    for method in methods:
        namespace[method.name] = _build_forwarder(method, name, module_name)

    def exec_body(body: dict[str, Any]) -> None:
        body.update(namespace)

    try:
        proxy_class: type = types.new_class(name, _class_bases(key), exec_body=exec_body)
    except TypeError as exc:
        raise SynthesisFailure(f"Cannot synthesize proxy class for ({key.describe()}): {exc}") from exc

    still_abstract: frozenset[str] = getattr(proxy_class, "__abstractmethods__", frozenset())
    if len(still_abstract) > 0:
        raise SynthesisFailure(
            f"Proxy class for ({key.describe()}) leaves abstract members: {', '.join(sorted(still_abstract))}"
        )
    logger.debug("Synthesized %s forwarding %d methods", name, len(methods))
    return proxy_class


def is_proxy(value: object) -> bool:
    """Report whether ``value`` is an instance of a generated proxy class.

    :param value: Any object.
    :returns: ``True`` for proxy instances.
    """
    return isinstance(type(value).__dict__.get(PROXY_KEY_ATTR), ContractSetKey)


def get_handler(proxy: object) -> Invoker:
    """Return the handler bound to ``proxy``.

    :param proxy: Proxy instance.
    :returns: Bound handler.
    :raises TypeError: If ``proxy`` is not a generated proxy instance.
    """
    if is_proxy(proxy) is False:
        raise TypeError(f"{proxy!r} is not a proxysmith proxy")
    return object.__getattribute__(proxy, HANDLER_ATTR)
