"""Reusable invokers: null answers, target chains, duck typing, and call recording."""

import logging
import threading
from collections.abc import Callable

from proxysmith.factory import ProxyFactory
from proxysmith.factory import proxy_factory
from proxysmith.methods import PRIMITIVE_TYPES
from proxysmith.methods import MethodDescriptor
from proxysmith.providers import ObjectProvider
from proxysmith.providers import as_provider
from proxysmith.utils import null_value

logger: logging.Logger = logging.getLogger(__name__)


class NullInvoker:
    """Answer every call with the zero value of its return type."""

    def invoke(self, proxy: object, method: MethodDescriptor, arguments: list[object]) -> object:
        """Return the zero value of the called method's return type.

        :param proxy: Proxy instance.
        :param method: Called method.
        :param arguments: Marshaled argument list.
        :returns: ``null_value(method.return_type)``.
        """
        _ = proxy, arguments
        return null_value(method.return_type)


class ChainInvoker:
    """Try targets in order and answer with the first non-zero result.

    A result counts as zero when it is ``None`` or equals the zero value of the
    method's return type. Every target before the answering one is called.
    """

    _targets: tuple[object, ...]

    def __init__(self, *targets: object) -> None:
        """Initialize the chain.

        :param targets: Objects implementing the proxied methods, tried first to last.
        """
        self._targets = targets

    def invoke(self, proxy: object, method: MethodDescriptor, arguments: list[object]) -> object:
        """Call ``method`` on each target until one returns a non-zero value.

        :param proxy: Proxy instance.
        :param method: Called method.
        :param arguments: Marshaled argument list, passed unchanged to every target.
        :returns: First non-zero result, or the zero value when no target produced one.
        """
        _ = proxy
        zero: object = null_value(method.return_type)
        for target in self._targets:
            value: object = method.invoke(target, arguments)
            if value is not None and value != zero:
                return value
        return zero


class DuckTypingInvoker:
    """Forward calls to a target that merely has a compatible same-named method."""

    _provider: ObjectProvider

    def __init__(self, provider: ObjectProvider | Callable[[], object]) -> None:
        """Initialize the invoker.

        :param provider: Source of the target, consulted on every call.
        """
        self._provider = as_provider(provider)

    def invoke(self, proxy: object, method: MethodDescriptor, arguments: list[object]) -> object:
        """Call the same-named method of the provided target.

        :param proxy: Proxy instance.
        :param method: Called method.
        :param arguments: Marshaled argument list.
        :returns: Target result.
        :raises NotImplementedError: If the target has no such method, or its
            annotated return type is incompatible with ``method``'s.
        """
        _ = proxy
        target: object = self._provider.get()
        target_class: type = type(target)
        target_method: object = getattr(target_class, method.name, None)
        if callable(target_method) is False:
            raise NotImplementedError(
                f"Target type {target_class.__qualname__} does not have a method matching {method.key}."
            )
        target_return: object = getattr(target_method, "__annotations__", {}).get("return")
        both_classes: bool = isinstance(target_return, type) and isinstance(method.return_type, type)
        if both_classes is True and method.return_type not in target_return.__mro__:  # type: ignore[union-attr]
            raise NotImplementedError(
                f"Target type {target_class.__qualname__} method {method.name} has incompatible return type."
            )
        return method.invoke(target, arguments)


class RecordedInvocation:
    """One call captured by an ``InvocationRecorder``."""

    method: MethodDescriptor
    arguments: tuple[object, ...]

    def __init__(self, method: MethodDescriptor, arguments: list[object]) -> None:
        """Initialize a recorded call.

        :param method: Called method.
        :param arguments: Marshaled arguments; copied.
        """
        self.method = method
        self.arguments = tuple(arguments)

    @staticmethod
    def _convert(value: object) -> str:
        """Render one argument the way recorded calls print it.

        :param value: Recorded argument.
        :returns: ``<null>`` for ``None``, ``(type){...}`` for sequences, ``str(value)`` otherwise.
        """
        if value is None:
            return "<null>"
        if isinstance(value, (list, tuple)) is True:
            items: str = ", ".join(RecordedInvocation._convert(item) for item in value)
            return f"({type(value).__name__}){{{items}}}"
        return str(value)

    def __str__(self) -> str:
        """Return ``module.Class.method(arguments)``.

        :returns: Rendered call.
        """
        declaring: type = self.method.declaring_class
        rendered: str = ", ".join(self._convert(argument) for argument in self.arguments)
        return f"{declaring.__module__}.{declaring.__qualname__}.{self.method.name}({rendered})"

    def __repr__(self) -> str:
        """Return a debug representation.

        :returns: Representation naming the method and arguments.
        """
        return f"RecordedInvocation({self.method.qualified_name}, arguments={self.arguments!r})"


class InvocationRecorder:
    """Record call chains made on recording proxies.

    A call on a recording proxy is recorded and answered with another recording
    proxy for its return type when that type can be proxied, or with the zero
    value of the type otherwise.
    """

    _factory: ProxyFactory
    _lock: threading.Lock
    _recorded: list[RecordedInvocation]

    def __init__(self, factory: ProxyFactory | None = None) -> None:
        """Initialize a recorder.

        :param factory: Factory creating the recording proxies; the default one when omitted.
        """
        self._factory = proxy_factory() if factory is None else factory
        self._lock = threading.Lock()
        self._recorded = []

    @property
    def recorded_invocations(self) -> list[RecordedInvocation]:
        """Return the calls recorded so far, oldest first.

        :returns: Copy of the recorded calls.
        """
        with self._lock:
            return list(self._recorded)

    def proxy(self, value_type: object) -> object:
        """Return a recording proxy for ``value_type``.

        :param value_type: Contract or class to record calls on.
        :returns: Recording proxy, or ``null_value(value_type)`` when it cannot be proxied.
        """
        if isinstance(value_type, type) is False or value_type in PRIMITIVE_TYPES:
            return null_value(value_type)
        if self._factory.can_proxy(value_type) is False:
            logger.debug("Recording stops at %s, which cannot be proxied", value_type.__qualname__)
            return null_value(value_type)
        return self._factory.create_invoker_proxy(self._record, value_type)

    def _record(self, proxy: object, method: MethodDescriptor, arguments: list[object]) -> object:
        """Record one call and answer it.

        :param proxy: Recording proxy that received the call.
        :param method: Called method.
        :param arguments: Marshaled argument list.
        :returns: ``None`` for void methods, otherwise a recording proxy or zero value for the return type.
        """
        _ = proxy
        with self._lock:
            self._recorded.append(RecordedInvocation(method, arguments))
        if method.is_void is True:
            return None
        return self.proxy(method.return_type)

    def reset(self) -> None:
        """Forget every recorded call."""
        with self._lock:
            self._recorded.clear()
