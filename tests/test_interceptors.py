"""Tests for the reusable interceptors and matchers."""

import logging
import re

import pytest

from proxysmith import Invocation
from proxysmith import ProxyClassCache
from proxysmith import ProxyFactory
from proxysmith import UndeclaredDispatchFailure
from proxysmith.interceptors import ArgumentsMatcher
from proxysmith.interceptors import DeclaredByMatcher
from proxysmith.interceptors import InterceptorChain
from proxysmith.interceptors import LoggingInterceptor
from proxysmith.interceptors import MethodNameMatcher
from proxysmith.interceptors import ReturnTypeMatcher
from proxysmith.interceptors import SwitchInterceptor
from proxysmith.interceptors import any_value
from proxysmith.interceptors import constant
from proxysmith.interceptors import ends_with
from proxysmith.interceptors import eq
from proxysmith.interceptors import gt
from proxysmith.interceptors import gte
from proxysmith.interceptors import invoking
from proxysmith.interceptors import is_instance
from proxysmith.interceptors import is_none
from proxysmith.interceptors import lt
from proxysmith.interceptors import lte
from proxysmith.interceptors import matches_pattern
from proxysmith.interceptors import not_none
from proxysmith.interceptors import provider
from proxysmith.interceptors import starts_with
from proxysmith.interceptors import throwing
from proxysmith.methods import MethodDescriptor
from proxysmith.methods import describe_method
from proxysmith.providers import bean
from tests.fixtures.echo import Echo
from tests.fixtures.echo import EchoError
from tests.fixtures.echo import EchoImpl


def _invocation(name: str, *arguments: object, target: object | None = None) -> Invocation:
    return Invocation(None, target, describe_method(Echo, name), list(arguments))


def _echo_proxy(interceptor: object, target: object | None = None) -> Echo:
    factory: ProxyFactory = ProxyFactory(cache=ProxyClassCache())
    return factory.create_interceptor_proxy(target, interceptor, Echo)  # type: ignore[return-value]


def test_invocation_proceed_requires_a_target() -> None:
    """Verify ``proceed`` without a target fails clearly."""
    with pytest.raises(TypeError, match="no target"):
        _invocation("echo_back", "x").proceed()
    assert _invocation("echo_back", "x", target=EchoImpl()).proceed() == "x"


def test_constant_and_provider_interceptors() -> None:
    """Verify provider-backed interceptors answer without reaching the target."""
    assert constant("fixed").intercept(_invocation("echo_back", "x")) == "fixed"
    fresh: object = provider(bean(EchoImpl)).intercept(_invocation("echo_back", "x"))
    assert isinstance(fresh, EchoImpl) is True


def test_throwing_interceptor() -> None:
    """Verify throwing interceptors raise instances, classes, and provided exceptions."""
    error: EchoError = EchoError("boom")
    with pytest.raises(EchoError) as exc_info:
        throwing(error).intercept(_invocation("echo"))
    assert exc_info.value is error
    with pytest.raises(KeyError):
        throwing(KeyError).intercept(_invocation("echo"))
    with pytest.raises(TypeError, match="not an exception"):
        throwing(lambda: "text").intercept(_invocation("echo"))  # type: ignore[arg-type]


def test_throwing_interceptor_through_a_proxy() -> None:
    """Verify raised exceptions follow the declared-exception rules."""
    proxy: Echo = _echo_proxy(throwing(OSError("disk")))
    with pytest.raises(OSError, match="disk"):
        proxy.io_exception()
    with pytest.raises(UndeclaredDispatchFailure):
        proxy.echo()


def test_invoking_interceptor() -> None:
    """Verify invoker interceptors receive the proxy, method, and arguments."""
    seen: list[tuple[str, list[object]]] = []

    def answer(proxy: object, method: MethodDescriptor, arguments: list[object]) -> object:
        seen.append((method.name, arguments))
        return "invoked"

    proxy: Echo = _echo_proxy(invoking(answer))
    assert proxy.echo_back("x") == "invoked"
    assert seen == [("echo_back", ["x"])]


def test_switch_interceptor_picks_first_matching_case() -> None:
    """Verify cases are tried in order and unmatched calls proceed."""
    switch: SwitchInterceptor = (
        SwitchInterceptor()
        .when(MethodNameMatcher("echo_back"))
        .then(constant("bar"))
        .when(MethodNameMatcher("echo_back"))
        .then(constant("never"))
    )
    proxy: Echo = _echo_proxy(switch, EchoImpl())
    assert proxy.echo_back("foo") == "bar"
    assert proxy.echo_back_pair("a", "b") == "ab"

    switch.when(MethodNameMatcher("echo_back_pair")).then(lambda invocation: "late case")
    assert proxy.echo_back_pair("a", "b") == "late case"


def test_method_name_matcher() -> None:
    """Verify matching by method name."""
    assert MethodNameMatcher("echo_back").matches(_invocation("echo_back", "x")) is True
    assert MethodNameMatcher("echo").matches(_invocation("echo_back", "x")) is False


def test_declared_by_matcher() -> None:
    """Verify matching by declaring class, exact or by subclass."""

    class LoudEcho(EchoImpl, Echo):
        pass

    invocation: Invocation = _invocation("echo_back", "x")
    assert DeclaredByMatcher(Echo).matches(invocation) is True
    assert DeclaredByMatcher(Echo, exact=True).matches(invocation) is True
    assert DeclaredByMatcher(LoudEcho).matches(invocation) is True
    assert DeclaredByMatcher(LoudEcho, exact=True).matches(invocation) is False
    assert DeclaredByMatcher(EchoImpl).matches(invocation) is False


def test_return_type_matcher() -> None:
    """Verify matching by declared return type."""
    assert ReturnTypeMatcher(str).matches(_invocation("echo_back", "x")) is True
    assert ReturnTypeMatcher(str, exact=True).matches(_invocation("echo_back", "x")) is True
    assert ReturnTypeMatcher(object).matches(_invocation("echo_back", "x")) is True
    assert ReturnTypeMatcher(object, exact=True).matches(_invocation("echo_back", "x")) is False
    assert ReturnTypeMatcher(int).matches(_invocation("echo_back_bool", True)) is True
    assert ReturnTypeMatcher(None).matches(_invocation("echo")) is True
    assert ReturnTypeMatcher(None).matches(_invocation("echo_back", "x")) is False


def test_argument_matchers() -> None:
    """Verify the argument matcher helpers."""
    assert any_value().matches(None) is True
    assert eq("a").matches("a") is True
    assert eq("a").matches("b") is False
    assert is_none().matches(None) is True
    assert not_none().matches(None) is False
    assert is_instance(str).matches("x") is True
    assert is_instance(str).matches(1) is False
    assert starts_with("ab").matches("abc") is True
    assert starts_with("ab").matches(None) is False
    assert ends_with("bc").matches("abc") is True
    assert ends_with("bc").matches("abd") is False
    assert matches_pattern(r"a\d+").matches("a12") is True
    assert matches_pattern(r"a\d+").matches("a12b") is False
    assert gt(5).matches(6) is True
    assert gt(5).matches(5) is False
    assert gte(5).matches(5) is True
    assert lt(5).matches(4) is True
    assert lte(5).matches(6) is False
    assert gt(5).matches("text") is False
    assert gt(5).matches(None) is False
    with pytest.raises(TypeError):
        is_instance("str")  # type: ignore[arg-type]
    with pytest.raises(re.error):
        matches_pattern("(")


def test_arguments_matcher() -> None:
    """Verify every argument slot must match, in order."""
    matcher: ArgumentsMatcher = ArgumentsMatcher(eq("a"), starts_with("b"))
    assert matcher.matches(_invocation("echo_back_pair", "a", "bc")) is True
    assert matcher.matches(_invocation("echo_back_pair", "a", "cb")) is False
    assert matcher.matches(_invocation("echo_back", "a")) is False


def test_interceptor_chain_runs_outermost_first() -> None:
    """Verify chained interceptors wrap each other in order."""
    order: list[str] = []

    def outer(invocation: Invocation) -> object:
        order.append("outer")
        return f"<{invocation.proceed()}>"

    def inner(invocation: Invocation) -> object:
        order.append("inner")
        invocation.arguments[0] = str(invocation.arguments[0]).upper()
        return invocation.proceed()

    proxy: Echo = _echo_proxy(InterceptorChain(outer, inner), EchoImpl())
    assert proxy.echo_back("hi") == "<HI>"
    assert order == ["outer", "inner"]
    assert _echo_proxy(InterceptorChain(), EchoImpl()).echo_back("plain") == "plain"


def test_logging_interceptor(caplog: pytest.LogCaptureFixture) -> None:
    """Verify entry, exit, and failure records."""
    test_logger: logging.Logger = logging.getLogger("tests.proxy_calls")
    proxy: Echo = _echo_proxy(LoggingInterceptor(logger=test_logger, level=logging.INFO), EchoImpl())
    with caplog.at_level(logging.INFO, logger="tests.proxy_calls"):
        assert proxy.echo_back("hello") == "hello"
        with pytest.raises(ValueError):
            proxy.illegal_argument()
    messages: list[str] = [record.getMessage() for record in caplog.records]
    assert "BEGIN Echo.echo_back('hello')" in messages
    assert "END Echo.echo_back -- 'hello'" in messages
    assert "EXCEPTION Echo.illegal_argument -- ValueError: dummy message" in messages


def test_logging_interceptor_validates_options() -> None:
    """Verify logger and level options are validated eagerly."""
    with pytest.raises(TypeError, match="logging.Logger"):
        LoggingInterceptor(logger="proxysmith")  # type: ignore[arg-type]
    with pytest.raises(TypeError, match="level"):
        LoggingInterceptor(level="DEBUG")  # type: ignore[arg-type]
