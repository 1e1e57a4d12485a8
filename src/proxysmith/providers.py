"""Object providers: sources of the delegate a delegator proxy forwards to."""

import copy
import threading
from collections.abc import Callable
from typing import Protocol

from proxysmith.errors import ProviderFailure


class ObjectProvider(Protocol):
    """Source of the object a call is forwarded to."""

    def get(self) -> object:
        """Return the object for the current call.

        :returns: Provided object.
        :raises ProviderFailure: If the object cannot be produced.
        """
        ...


class _CallableProvider:
    """Adapter turning a zero-argument callable into a provider."""

    _factory: Callable[[], object]

    def __init__(self, factory: Callable[[], object]) -> None:
        """Initialize the adapter.

        :param factory: Zero-argument callable producing the object.
        """
        self._factory = factory

    def get(self) -> object:
        """Call the wrapped callable.

        :returns: Callable result.
        """
        return self._factory()

    def __repr__(self) -> str:
        """Return a debug representation.

        :returns: Representation naming the wrapped callable.
        """
        return f"_CallableProvider({self._factory!r})"


def as_provider(candidate: object) -> ObjectProvider:
    """Coerce ``candidate`` to an ``ObjectProvider``.

    :param candidate: Object with a ``get()`` method, or a zero-argument callable.
    :returns: Provider.
    :raises TypeError: If ``candidate`` is neither.
    """
    if callable(getattr(candidate, "get", None)) is True:
        return candidate  # type: ignore[return-value]
    if callable(candidate) is True:
        return _CallableProvider(candidate)  # type: ignore[arg-type]
    raise TypeError(f"Object provider must define get() or be callable, got {candidate!r}")


class ConstantProvider:
    """Always provide the same object."""

    _value: object

    def __init__(self, value: object) -> None:
        """Initialize a constant provider.

        :param value: Provided object; may be ``None``.
        """
        self._value = value

    def get(self) -> object:
        """Return the constant.

        :returns: The configured object.
        """
        return self._value

    def __repr__(self) -> str:
        """Return a debug representation.

        :returns: Representation naming the constant.
        """
        return f"ConstantProvider({self._value!r})"


class NullProvider(ConstantProvider):
    """Always provide ``None``."""

    def __init__(self) -> None:
        """Initialize a provider of ``None``."""
        super().__init__(None)


class BeanProvider:
    """Provide a fresh instance of a class constructed without arguments."""

    _bean_class: type

    def __init__(self, bean_class: type) -> None:
        """Initialize a bean provider.

        :param bean_class: Class instantiated on every ``get()``.
        :raises TypeError: If ``bean_class`` is not a class.
        """
        if isinstance(bean_class, type) is False:
            raise TypeError(f"Bean class must be a class, got {bean_class!r}")
        self._bean_class = bean_class

    def get(self) -> object:
        """Instantiate the bean class.

        :returns: New instance.
        :raises ProviderFailure: If the class cannot be instantiated without arguments.
        """
        try:
            return self._bean_class()
        except TypeError as exc:
            raise ProviderFailure(
                f"{self._bean_class.__qualname__} cannot be instantiated without arguments: {exc}"
            ) from exc

    def __repr__(self) -> str:
        """Return a debug representation.

        :returns: Representation naming the bean class.
        """
        return f"BeanProvider({self._bean_class.__qualname__})"


class CloningProvider:
    """Provide a shallow copy of a prototype object."""

    _prototype: object

    def __init__(self, prototype: object) -> None:
        """Initialize a cloning provider.

        :param prototype: Object copied on every ``get()``.
        :raises ValueError: If ``prototype`` is ``None``.
        """
        if prototype is None:
            raise ValueError("Cloning prototype cannot be None")
        self._prototype = prototype

    def get(self) -> object:
        """Copy the prototype.

        :returns: Shallow copy made by ``copy.copy``.
        :raises ProviderFailure: If the prototype cannot be copied.
        """
        try:
            return copy.copy(self._prototype)
        except (TypeError, copy.Error) as exc:
            raise ProviderFailure(f"Cannot clone {type(self._prototype).__qualname__}: {exc}") from exc


class ProviderDecorator:
    """Provider delegating to an inner provider; subclasses refine ``get()``."""

    inner: ObjectProvider | None

    def __init__(self, inner: ObjectProvider | Callable[[], object]) -> None:
        """Initialize a decorator.

        :param inner: Wrapped provider or zero-argument callable.
        """
        self.inner = as_provider(inner)

    def get(self) -> object:
        """Return the inner provider's object.

        :returns: Provided object.
        :raises ProviderFailure: If there is no inner provider any more.
        """
        inner: ObjectProvider | None = self.inner
        if inner is None:
            raise ProviderFailure(f"{type(self).__name__} has no inner provider")
        return inner.get()


class SingletonProvider(ProviderDecorator):
    """Provide the inner provider's first object forever.

    The inner provider is consulted once, under a lock, and released afterwards.
    """

    _lock: threading.Lock
    _instance: object
    _has_instance: bool

    def __init__(self, inner: ObjectProvider | Callable[[], object]) -> None:
        """Initialize a singleton provider.

        :param inner: Provider consulted for the first object.
        """
        super().__init__(inner)
        self._lock = threading.Lock()
        self._instance = None
        self._has_instance = False

    def get(self) -> object:
        """Return the first object the inner provider produced.

        :returns: Cached object.
        :raises ProviderFailure: If the inner provider fails on the first call;
            the next call retries.
        """
        with self._lock:
            if self._has_instance is False:
                self._instance = super().get()
                self._has_instance = True
                self.inner = None
            return self._instance


class SynchronizedProvider(ProviderDecorator):
    """Serialize calls to an inner provider that is not safe to share between threads."""

    _lock: threading.Lock

    def __init__(self, inner: ObjectProvider | Callable[[], object]) -> None:
        """Initialize a synchronized provider.

        :param inner: Provider whose ``get()`` calls are serialized.
        """
        super().__init__(inner)
        self._lock = threading.Lock()

    def get(self) -> object:
        """Return the inner provider's object while holding the lock.

        :returns: Provided object.
        :raises ProviderFailure: If there is no inner provider.
        """
        with self._lock:
            return super().get()


def constant(value: object) -> ConstantProvider:
    """Return a provider of ``value``."""
    return ConstantProvider(value)


def null_provider() -> NullProvider:
    """Return a provider of ``None``."""
    return NullProvider()


def bean(bean_class: type) -> BeanProvider:
    """Return a provider of fresh ``bean_class`` instances."""
    return BeanProvider(bean_class)


def cloning(prototype: object) -> CloningProvider:
    """Return a provider of shallow copies of ``prototype``."""
    return CloningProvider(prototype)


def singleton(inner: ObjectProvider | Callable[[], object]) -> SingletonProvider:
    """Return a provider caching the first object of ``inner``."""
    return SingletonProvider(inner)


def synchronized(inner: ObjectProvider | Callable[[], object]) -> SynchronizedProvider:
    """Return a provider serializing calls to ``inner``."""
    return SynchronizedProvider(inner)
