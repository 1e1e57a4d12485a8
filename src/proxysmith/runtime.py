"""Dispatch handlers bound to proxy instances, and the invocation protocol."""

from collections.abc import Callable
from typing import Protocol

from proxysmith.errors import TargetInvocationFailure
from proxysmith.methods import MethodDescriptor
from proxysmith.methods import is_equals_method
from proxysmith.methods import is_hash_method
from proxysmith.providers import ObjectProvider
from proxysmith.providers import as_provider

InvokeFunction = Callable[[object, MethodDescriptor, list[object]], object]


class Invoker(Protocol):
    """Anything able to answer a proxied call from its identity and arguments."""

    def invoke(self, proxy: object, method: MethodDescriptor, arguments: list[object]) -> object:
        """Answer one proxied call.

        :param proxy: Proxy instance that received the call.
        :param method: Called method.
        :param arguments: Marshaled argument list.
        :returns: Call result.
        """
        ...


class Interceptor(Protocol):
    """Hook wrapped around calls to a real target."""

    def intercept(self, invocation: "Invocation") -> object:
        """Handle one call in flight.

        :param invocation: Call description; ``invocation.proceed()`` reaches the target.
        :returns: Call result.
        """
        ...


class Invocation:
    """One method call in flight, handed to interceptors.

    ``arguments`` is the very list the proxy marshaled, so changes made by an
    interceptor are what ``proceed()`` passes to the target.
    """

    _proxy: object
    _target: object | None
    _method: MethodDescriptor
    _arguments: list[object]

    def __init__(
        self,
        proxy: object,
        target: object | None,
        method: MethodDescriptor,
        arguments: list[object],
    ) -> None:
        """Initialize an invocation.

        :param proxy: Proxy instance that received the call.
        :param target: Object ``proceed()`` calls, or ``None`` when there is none.
        :param method: Called method.
        :param arguments: Mutable marshaled argument list.
        """
        self._proxy = proxy
        self._target = target
        self._method = method
        self._arguments = arguments

    @property
    def arguments(self) -> list[object]:
        """Return the mutable argument list.

        :returns: Argument list shared with ``proceed()``.
        """
        return self._arguments

    @property
    def method(self) -> MethodDescriptor:
        """Return the called method.

        :returns: Method descriptor.
        """
        return self._method

    @property
    def proxy(self) -> object:
        """Return the proxy that received the call.

        :returns: Proxy instance.
        """
        return self._proxy

    @property
    def target(self) -> object | None:
        """Return the object ``proceed()`` calls.

        :returns: Target, or ``None``.
        """
        return self._target

    def proceed(self) -> object:
        """Call the method on the target with the current arguments.

        May be called any number of times. The target's exception is raised
        unchanged so interceptors can handle it.

        :returns: Target result.
        :raises TypeError: If the invocation has no target.
        """
        if self._target is None:
            raise TypeError(f"Invocation of {self._method.qualified_name} has no target to proceed to")
        return self._method.invoke(self._target, self._arguments)

    def __repr__(self) -> str:
        """Return a debug representation.

        :returns: Representation naming the method and arguments.
        """
        return f"Invocation({self._method.qualified_name}, arguments={self._arguments!r})"


def as_callable(candidate: object, attr_name: str, role: str) -> Callable[..., object]:
    """Return ``candidate.<attr_name>`` or ``candidate`` itself when it is a plain callable.

    :param candidate: Handler collaborator.
    :param attr_name: Protocol method name.
    :param role: Collaborator description used in error messages.
    :returns: Callable implementing the protocol method.
    :raises TypeError: If ``candidate`` offers neither.
    """
    bound: object = getattr(candidate, attr_name, None)
    if callable(bound) is True:
        return bound  # type: ignore[return-value]
    if callable(candidate) is True:
        return candidate  # type: ignore[return-value]
    raise TypeError(f"{role} must define {attr_name}() or be callable, got {candidate!r}")


class _DispatchHandler:
    """Shared identity handling for every built-in strategy."""

    def invoke(self, proxy: object, method: MethodDescriptor, arguments: list[object]) -> object:
        """Answer one proxied call.

        ``__hash__`` and ``__eq__`` are answered by identity without running user code.

        :param proxy: Proxy instance that received the call.
        :param method: Called method.
        :param arguments: Marshaled argument list.
        :returns: Call result.
        :raises TargetInvocationFailure: If user code run for the call raised.
        """
        if is_hash_method(method) is True:
            return object.__hash__(proxy)
        if is_equals_method(method) is True:
            return proxy is arguments[0]
        return self._dispatch(proxy, method, arguments)

    def _dispatch(self, proxy: object, method: MethodDescriptor, arguments: list[object]) -> object:
        """Answer a call other than ``__eq__`` or ``__hash__``.

        :param proxy: Proxy instance.
        :param method: Called method.
        :param arguments: Marshaled argument list.
        :returns: Call result.
        """
        raise NotImplementedError


class DelegatorHandler(_DispatchHandler):
    """Forward every call to an object fetched from a provider."""

    _provider: ObjectProvider

    def __init__(self, provider: ObjectProvider | Callable[[], object]) -> None:
        """Initialize a delegator.

        :param provider: Provider consulted on every call.
        """
        self._provider = as_provider(provider)

    @property
    def provider(self) -> ObjectProvider:
        """Return the delegate provider.

        :returns: Provider.
        """
        return self._provider

    def _dispatch(self, proxy: object, method: MethodDescriptor, arguments: list[object]) -> object:
        """Fetch the delegate and call the method on it.

        :param proxy: Proxy instance.
        :param method: Called method.
        :param arguments: Marshaled argument list.
        :returns: Delegate result.
        :raises ProviderFailure: If the provider cannot produce the delegate.
        :raises TargetInvocationFailure: If the delegate method raised.
        """
        _ = proxy
        delegate: object = self._provider.get()
        try:
            return method.invoke(delegate, arguments)
        except Exception as exc:
            raise TargetInvocationFailure(exc) from exc


class InterceptorHandler(_DispatchHandler):
    """Route every call through one interceptor wrapped around a target."""

    _target: object | None
    _intercept: Callable[[Invocation], object]

    def __init__(self, target: object | None, interceptor: Interceptor | Callable[[Invocation], object]) -> None:
        """Initialize an interceptor handler.

        :param target: Object reached through ``Invocation.proceed()``; may be ``None``.
        :param interceptor: Interceptor or plain callable taking the invocation.
        """
        self._target = target
        self._intercept = as_callable(interceptor, "intercept", "Interceptor")

    @property
    def target(self) -> object | None:
        """Return the intercepted target.

        :returns: Target, or ``None``.
        """
        return self._target

    def _dispatch(self, proxy: object, method: MethodDescriptor, arguments: list[object]) -> object:
        """Run the interceptor around an invocation of the target.

        :param proxy: Proxy instance.
        :param method: Called method.
        :param arguments: Marshaled argument list, shared with the invocation.
        :returns: Interceptor result.
        :raises TargetInvocationFailure: If the interceptor let an exception escape.
        """
        invocation: Invocation = Invocation(proxy, self._target, method, arguments)
        try:
            return self._intercept(invocation)
        except TargetInvocationFailure:
            raise
        except Exception as exc:
            raise TargetInvocationFailure(exc) from exc


class InvokerHandler(_DispatchHandler):
    """Answer every call with a user function; there is no built-in target."""

    _invoke: InvokeFunction

    def __init__(self, invoker: Invoker | InvokeFunction) -> None:
        """Initialize an invoker handler.

        :param invoker: Invoker or plain callable ``(proxy, method, arguments)``.
        """
        self._invoke = as_callable(invoker, "invoke", "Invoker")

    def _dispatch(self, proxy: object, method: MethodDescriptor, arguments: list[object]) -> object:
        """Answer the call with the invoker.

        :param proxy: Proxy instance.
        :param method: Called method.
        :param arguments: Marshaled argument list.
        :returns: Invoker result.
        :raises TargetInvocationFailure: If the invoker raised.
        """
        try:
            return self._invoke(proxy, method, arguments)
        except TargetInvocationFailure:
            raise
        except Exception as exc:
            raise TargetInvocationFailure(exc) from exc
