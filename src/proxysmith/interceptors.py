"""Reusable interceptors, invocation matchers, and argument matchers."""

import logging
import re
from collections.abc import Callable
from typing import Protocol

from proxysmith.methods import MethodDescriptor
from proxysmith.providers import ConstantProvider
from proxysmith.providers import ObjectProvider
from proxysmith.providers import as_provider
from proxysmith.runtime import Interceptor
from proxysmith.runtime import Invocation
from proxysmith.runtime import InvokeFunction
from proxysmith.runtime import Invoker
from proxysmith.runtime import as_callable

InterceptFunction = Callable[[Invocation], object]


class InvocationMatcher(Protocol):
    """Predicate over invocations, used to select ``SwitchInterceptor`` cases."""

    def matches(self, invocation: Invocation) -> bool:
        """Report whether ``invocation`` matches.

        :param invocation: Call in flight.
        :returns: Match flag.
        """
        ...


class ArgumentMatcher(Protocol):
    """Predicate over a single argument value."""

    def matches(self, argument: object) -> bool:
        """Report whether ``argument`` matches.

        :param argument: Argument value.
        :returns: Match flag.
        """
        ...


class ObjectProviderInterceptor:
    """Answer every call with the provider's object, never reaching the target."""

    _provider: ObjectProvider

    def __init__(self, provider: ObjectProvider | Callable[[], object]) -> None:
        """Initialize the interceptor.

        :param provider: Source of the returned value.
        """
        self._provider = as_provider(provider)

    def intercept(self, invocation: Invocation) -> object:
        """Return the provider's object.

        :param invocation: Call in flight; not used.
        :returns: Provided object.
        """
        _ = invocation
        return self._provider.get()


class ThrowingInterceptor:
    """Raise the provider's exception on every call."""

    _provider: ObjectProvider

    def __init__(self, provider: ObjectProvider | Callable[[], object]) -> None:
        """Initialize the interceptor.

        :param provider: Source of the exception instance or class to raise.
        """
        self._provider = as_provider(provider)

    def intercept(self, invocation: Invocation) -> object:
        """Raise the provided exception.

        :param invocation: Call in flight.
        :raises BaseException: The provided exception.
        :raises TypeError: If the provider returned something that is not an exception.
        """
        _ = invocation
        exception: object = self._provider.get()
        is_exception_class: bool = isinstance(exception, type) and issubclass(exception, BaseException)
        if isinstance(exception, BaseException) is False and is_exception_class is False:
            raise TypeError(f"ThrowingInterceptor provider returned {exception!r}, not an exception")
        raise exception  # type: ignore[misc]


class InvokerInterceptor:
    """Answer every call with an invoker, ignoring the target."""

    _invoke: InvokeFunction

    def __init__(self, invoker: Invoker | InvokeFunction) -> None:
        """Initialize the interceptor.

        :param invoker: Invoker or callable ``(proxy, method, arguments)``.
        """
        self._invoke = as_callable(invoker, "invoke", "Invoker")

    def intercept(self, invocation: Invocation) -> object:
        """Answer the call with the invoker.

        :param invocation: Call in flight.
        :returns: Invoker result.
        """
        return self._invoke(invocation.proxy, invocation.method, invocation.arguments)


def constant(value: object) -> ObjectProviderInterceptor:
    """Return an interceptor answering every call with ``value``."""
    return ObjectProviderInterceptor(ConstantProvider(value))


def provider(source: ObjectProvider | Callable[[], object]) -> ObjectProviderInterceptor:
    """Return an interceptor answering every call with ``source.get()``."""
    return ObjectProviderInterceptor(source)


def throwing(exception: BaseException | type[BaseException] | ObjectProvider) -> ThrowingInterceptor:
    """Return an interceptor raising ``exception``, or the exceptions a provider yields.

    :param exception: Exception instance or class, or a provider of them.
    :returns: Throwing interceptor.
    """
    is_exception_class: bool = isinstance(exception, type) and issubclass(exception, BaseException)
    if isinstance(exception, BaseException) is True or is_exception_class is True:
        return ThrowingInterceptor(ConstantProvider(exception))
    return ThrowingInterceptor(exception)  # type: ignore[arg-type]


def invoking(invoker: Invoker | InvokeFunction) -> InvokerInterceptor:
    """Return an interceptor delegating every call to ``invoker``."""
    return InvokerInterceptor(invoker)


class MethodNameMatcher:
    """Match invocations of methods with a given name."""

    _method_name: str

    def __init__(self, method_name: str) -> None:
        """Initialize the matcher.

        :param method_name: Name the called method must have.
        """
        self._method_name = method_name

    def matches(self, invocation: Invocation) -> bool:
        """Compare the called method's name.

        :param invocation: Call in flight.
        :returns: ``True`` when the names are equal.
        """
        return invocation.method.name == self._method_name


class DeclaredByMatcher:
    """Match invocations by the class declaring the called method.

    Without ``exact`` the method matches when ``declared_by`` is the declaring
    class or one of its subclasses.
    """

    _declared_by: type
    _exact: bool

    def __init__(self, declared_by: type, exact: bool = False) -> None:
        """Initialize the matcher.

        :param declared_by: Class compared with the declaring class.
        :param exact: Require the declaring class to be ``declared_by`` itself.
        """
        self._declared_by = declared_by
        self._exact = exact

    def matches(self, invocation: Invocation) -> bool:
        """Compare the class declaring the called method.

        :param invocation: Call in flight.
        :returns: ``True`` when the declaring class matches.
        """
        owner: type = invocation.method.declaring_class
        if self._exact is True:
            return owner is self._declared_by
        return owner in self._declared_by.__mro__


class ReturnTypeMatcher:
    """Match invocations by the declared return type of the called method.

    Without ``exact`` the method matches when it returns ``return_type`` or a
    subclass of it; ``None`` stands for methods annotated ``-> None``.
    """

    _return_type: type | None
    _exact: bool

    def __init__(self, return_type: type | None, exact: bool = False) -> None:
        """Initialize the matcher.

        :param return_type: Expected return type.
        :param exact: Require the declared return type to be ``return_type`` itself.
        """
        self._return_type = return_type
        self._exact = exact

    def matches(self, invocation: Invocation) -> bool:
        """Compare the declared return type of the called method.

        :param invocation: Call in flight.
        :returns: ``True`` when the return type matches.
        """
        method: MethodDescriptor = invocation.method
        if self._return_type is None or self._return_type is type(None):
            return method.is_void
        declared: object = method.return_type
        if self._exact is True:
            return declared is self._return_type
        if isinstance(declared, type) is False:
            return False
        return self._return_type in declared.__mro__


class _PredicateMatcher:
    """Argument matcher backed by a predicate."""

    _predicate: Callable[[object], bool]
    _description: str

    def __init__(self, predicate: Callable[[object], bool], description: str) -> None:
        """Initialize the matcher.

        :param predicate: Test applied to each argument.
        :param description: Text returned by ``repr``.
        """
        self._predicate = predicate
        self._description = description

    def matches(self, argument: object) -> bool:
        """Apply the predicate.

        :param argument: One marshaled argument.
        :returns: Predicate result.
        """
        return self._predicate(argument)

    def __repr__(self) -> str:
        """Return the matcher description.

        :returns: Text such as ``eq('a')``.
        """
        return self._description


def any_value() -> ArgumentMatcher:
    """Match every argument."""
    return _PredicateMatcher(lambda argument: True, "any_value()")


def eq(value: object) -> ArgumentMatcher:
    """Match arguments equal to ``value``."""
    return _PredicateMatcher(lambda argument: argument == value, f"eq({value!r})")


def is_none() -> ArgumentMatcher:
    """Match ``None``."""
    return _PredicateMatcher(lambda argument: argument is None, "is_none()")


def not_none() -> ArgumentMatcher:
    """Match anything but ``None``."""
    return _PredicateMatcher(lambda argument: argument is not None, "not_none()")


def is_instance(value_type: type) -> ArgumentMatcher:
    """Match instances of ``value_type``.

    :param value_type: Expected class.
    :returns: Matcher.
    :raises TypeError: If ``value_type`` is not a class.
    """
    if isinstance(value_type, type) is False:
        raise TypeError(f"is_instance() expects a class, got {value_type!r}")
    return _PredicateMatcher(
        lambda argument: isinstance(argument, value_type),
        f"is_instance({value_type.__qualname__})",
    )


def starts_with(prefix: str) -> ArgumentMatcher:
    """Match strings starting with ``prefix``; non-strings never match."""
    return _PredicateMatcher(
        lambda argument: isinstance(argument, str) and argument.startswith(prefix),
        f"starts_with({prefix!r})",
    )


def ends_with(suffix: str) -> ArgumentMatcher:
    """Match strings ending with ``suffix``; non-strings never match."""
    return _PredicateMatcher(
        lambda argument: isinstance(argument, str) and argument.endswith(suffix),
        f"ends_with({suffix!r})",
    )


def matches_pattern(pattern: str) -> ArgumentMatcher:
    """Match strings fully matching the regular expression ``pattern``.

    :param pattern: Regular expression.
    :returns: Matcher.
    :raises re.error: If ``pattern`` does not compile.
    """
    compiled: re.Pattern[str] = re.compile(pattern)
    return _PredicateMatcher(
        lambda argument: isinstance(argument, str) and compiled.fullmatch(argument) is not None,
        f"matches_pattern({pattern!r})",
    )


def _compare(value: object, predicate: Callable[[object], bool], description: str) -> ArgumentMatcher:
    """Build an ordering matcher that is false for ``None`` and incomparable arguments.

    :param value: Value compared against.
    :param predicate: Comparison applied to each argument.
    :param description: Helper name used in ``repr`` and errors.
    :returns: Argument matcher.
    :raises ValueError: If ``value`` is ``None``.
    """
    if value is None:
        raise ValueError(f"{description} needs a value to compare with")

    def matches(argument: object) -> bool:
        if argument is None:
            return False
        try:
            return predicate(argument)
        except TypeError:
            return False

    return _PredicateMatcher(matches, f"{description}({value!r})")


def gt(value: object) -> ArgumentMatcher:
    """Match arguments greater than ``value``."""
    return _compare(value, lambda argument: argument > value, "gt")  # type: ignore[operator]


def gte(value: object) -> ArgumentMatcher:
    """Match arguments greater than or equal to ``value``."""
    return _compare(value, lambda argument: argument >= value, "gte")  # type: ignore[operator]


def lt(value: object) -> ArgumentMatcher:
    """Match arguments less than ``value``."""
    return _compare(value, lambda argument: argument < value, "lt")  # type: ignore[operator]


def lte(value: object) -> ArgumentMatcher:
    """Match arguments less than or equal to ``value``."""
    return _compare(value, lambda argument: argument <= value, "lte")  # type: ignore[operator]


class ArgumentsMatcher:
    """Match invocations whose arguments satisfy one matcher each, in order."""

    _argument_matchers: tuple[ArgumentMatcher, ...]

    def __init__(self, *argument_matchers: ArgumentMatcher) -> None:
        """Initialize the matcher.

        :param argument_matchers: One matcher per marshaled argument slot.
        """
        self._argument_matchers = argument_matchers

    def matches(self, invocation: Invocation) -> bool:
        """Check every argument slot against its matcher.

        :param invocation: Call in flight.
        :returns: ``True`` when the slot counts agree and every slot matches.
        """
        arguments: list[object] = invocation.arguments
        if len(arguments) != len(self._argument_matchers):
            return False
        for matcher, argument in zip(self._argument_matchers, arguments):
            if matcher.matches(argument) is False:
                return False
        return True


class _SwitchCase:
    """Pending ``SwitchInterceptor`` case waiting for its interceptor."""

    _switch: "SwitchInterceptor"
    _matcher: InvocationMatcher

    def __init__(self, switch: "SwitchInterceptor", matcher: InvocationMatcher) -> None:
        """Initialize a pending case.

        :param switch: Switch receiving the completed case.
        :param matcher: Invocation matcher of the case.
        """
        self._switch = switch
        self._matcher = matcher

    def then(self, interceptor: Interceptor | InterceptFunction) -> "SwitchInterceptor":
        """Register ``interceptor`` for the pending matcher.

        :param interceptor: Interceptor or callable taking the invocation.
        :returns: The owning switch, for chaining.
        """
        self._switch.add_case(self._matcher, interceptor)
        return self._switch


class SwitchInterceptor:
    """Dispatch to the interceptor of the first matching case.

    Calls matching no case proceed to the target. Cases may be added while the
    switch is in use.
    """

    _cases: tuple[tuple[InvocationMatcher, InterceptFunction], ...]

    def __init__(self) -> None:
        """Initialize a switch without cases."""
        self._cases = ()

    def when(self, matcher: InvocationMatcher) -> _SwitchCase:
        """Start a case for ``matcher``; complete it with ``.then(interceptor)``.

        :param matcher: Invocation matcher.
        :returns: Pending case.
        """
        return _SwitchCase(self, matcher)

    def add_case(self, matcher: InvocationMatcher, interceptor: Interceptor | InterceptFunction) -> None:
        """Append a case.

        :param matcher: Invocation matcher.
        :param interceptor: Interceptor or callable taking the invocation.
        """
        intercept: InterceptFunction = as_callable(interceptor, "intercept", "Interceptor")
        self._cases = (*self._cases, (matcher, intercept))

    def intercept(self, invocation: Invocation) -> object:
        """Run the first matching case, or proceed when none matches.

        :param invocation: Call in flight.
        :returns: Case result or target result.
        """
        for matcher, intercept in self._cases:
            if matcher.matches(invocation) is True:
                return intercept(invocation)
        return invocation.proceed()


class _ChainedInvocation(Invocation):
    """Invocation whose ``proceed()`` moves to the next interceptor of a chain."""

    _outer: Invocation
    _rest: tuple[InterceptFunction, ...]

    def __init__(self, outer: Invocation, rest: tuple[InterceptFunction, ...]) -> None:
        """Initialize a chained invocation.

        :param outer: Invocation built by the proxy handler.
        :param rest: Interceptors still to run, next first.
        """
        super().__init__(outer.proxy, outer.target, outer.method, outer.arguments)
        self._outer = outer
        self._rest = rest

    def proceed(self) -> object:
        """Run the next interceptor, or reach the target after the last one.

        :returns: Result of the rest of the chain.
        """
        if len(self._rest) == 0:
            return self._outer.proceed()
        return self._rest[0](_ChainedInvocation(self._outer, self._rest[1:]))


class InterceptorChain:
    """Compose interceptors; the first is outermost and each ``proceed()`` reaches the next."""

    _interceptors: tuple[InterceptFunction, ...]

    def __init__(self, *interceptors: Interceptor | InterceptFunction) -> None:
        """Initialize the chain.

        :param interceptors: Interceptors, outermost first.
        """
        self._interceptors = tuple(
            as_callable(interceptor, "intercept", "Interceptor") for interceptor in interceptors
        )

    def intercept(self, invocation: Invocation) -> object:
        """Run the chain around ``invocation``.

        :param invocation: Call in flight.
        :returns: Result of the outermost interceptor.
        """
        return _ChainedInvocation(invocation, self._interceptors).proceed()


class LoggingInterceptor:
    """Log method entry, exit, and failure, then proceed unchanged."""

    _logger: logging.Logger
    _level: int

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.DEBUG) -> None:
        """Initialize the interceptor.

        :param logger: Destination logger; this module's logger when omitted.
        :param level: Level used for entry and exit records.
        :raises TypeError: If ``logger`` is not a ``logging.Logger`` or ``level`` is not an int.
        """
        if logger is None:
            logger = logging.getLogger(__name__)
        if isinstance(logger, logging.Logger) is False:
            raise TypeError(f"logger must be a logging.Logger, got {type(logger).__name__}")
        if isinstance(level, int) is False or isinstance(level, bool) is True:
            raise TypeError(f"level must be an int logging level, got {level!r}")
        self._logger = logger
        self._level = level

    def intercept(self, invocation: Invocation) -> object:
        """Log around ``invocation.proceed()``.

        :param invocation: Call in flight.
        :returns: Target result.
        :raises BaseException: Whatever the target raised, after it is logged.
        """
        name: str = invocation.method.qualified_name
        if self._logger.isEnabledFor(self._level) is True:
            self._logger.log(self._level, "BEGIN %s(%s)", name, ", ".join(repr(a) for a in invocation.arguments))
        try:
            result: object = invocation.proceed()
        except Exception as exc:
            self._logger.log(self._level, "EXCEPTION %s -- %s: %s", name, type(exc).__name__, exc)
            raise
        self._logger.log(self._level, "END %s -- %r", name, result)
        return result
