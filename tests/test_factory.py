"""End-to-end tests for the proxy factory and its three dispatch strategies."""

from collections.abc import Iterator

import pytest

import proxysmith
from proxysmith import Invocation
from proxysmith import ProviderFailure
from proxysmith import ProxyClassCache
from proxysmith import ProxyFactory
from proxysmith import ProxyLoader
from proxysmith import UndeclaredDispatchFailure
from proxysmith import UnsupportedContractSet
from proxysmith.methods import MethodDescriptor
from proxysmith.providers import constant
from tests.fixtures.echo import AbstractEcho
from tests.fixtures.echo import Counter
from tests.fixtures.echo import Echo
from tests.fixtures.echo import EchoError
from tests.fixtures.echo import EchoImpl
from tests.fixtures.echo import FinalEcho
from tests.fixtures.echo import Metaclassed
from tests.fixtures.echo import NeedsArguments
from tests.fixtures.echo import OtherBase
from tests.fixtures.echo import SubclassedIOEcho
from tests.fixtures.echo import SubEcho
from tests.fixtures.echo import SubEchoImpl
from tests.fixtures.echo import ValueEcho


@pytest.fixture
def factory() -> Iterator[ProxyFactory]:
    """Provide a factory with a private cache.

    :yields: Factory.
    """
    cache: ProxyClassCache = ProxyClassCache()
    yield ProxyFactory(cache=cache)
    cache.clear()


def _proceed(invocation: Invocation) -> object:
    return invocation.proceed()


def _answer(proxy: object, method: MethodDescriptor, arguments: list[object]) -> object:
    _ = proxy, arguments
    if method.name == "echo_back":
        return "invoked"
    return None


def _proxies(factory: ProxyFactory, *types: type) -> list[object]:
    return [
        factory.create_delegator_proxy(constant(EchoImpl()), *types),
        factory.create_interceptor_proxy(EchoImpl(), _proceed, *types),
        factory.create_invoker_proxy(_answer, *types),
    ]


def test_delegator_end_to_end(factory: ProxyFactory) -> None:
    """Verify a delegator proxy forwards to the provided target."""
    proxy: Echo = factory.create_delegator_proxy(constant(EchoImpl()), Echo)  # type: ignore[assignment]
    assert proxy.echo_back("hi") == "hi"
    assert proxy.echo_back_pair("a", "b") == "ab"
    assert proxy.echo_back_all("x", "y") == "xy"
    assert proxy.echo_styled("hey", loud=True) == "HEY"
    assert proxy.echo_back_float(2) == 2.0
    assert proxy.echo() is None


def test_delegators_with_different_providers_share_a_class(factory: ProxyFactory) -> None:
    """Verify proxies of one contract set share their class but not their identity."""
    first: object = factory.create_delegator_proxy(constant(EchoImpl()), Echo)
    second: object = factory.create_delegator_proxy(EchoImpl, Echo)
    assert type(first) is type(second)
    assert first is not second
    assert second.echo_back("again") == "again"  # type: ignore[attr-defined]


def test_same_contracts_same_class_different_loaders_different_classes(factory: ProxyFactory) -> None:
    """Verify class identity follows the contract set and the loader."""
    loader: ProxyLoader = ProxyLoader("other")
    first: type = factory.get_proxy_class(Echo)
    assert factory.get_proxy_class(Echo) is first
    assert factory.get_proxy_class(Echo, Echo) is first
    assert factory.get_proxy_class(Echo, Counter) is not first
    assert factory.get_proxy_class(Echo, loader=loader) is not first
    assert ProxyFactory(cache=factory.cache, loader=loader).get_proxy_class(Echo) is factory.get_proxy_class(
        Echo, loader=loader
    )


@pytest.mark.parametrize("types", [(Echo, SubEcho), (SubEcho, Echo)])
def test_contract_may_precede_its_sub_contract(factory: ProxyFactory, types: tuple[type, ...]) -> None:
    """Verify a contract and its sub-contract build in either order, as distinct keys."""
    proxy: SubEcho = factory.create_delegator_proxy(constant(SubEchoImpl()), *types)  # type: ignore[assignment]
    assert proxy.echo_back("hi") == "hi"
    assert proxy.echo_twice("ab") == "abab"
    assert SubEcho in type(proxy).__mro__
    assert Echo in type(proxy).__mro__
    assert factory.get_proxy_class(*types) is type(proxy)
    assert factory.get_proxy_class(*reversed(types)) is not type(proxy)


@pytest.mark.parametrize(
    "types",
    [(Echo, FinalEcho), (NeedsArguments,), (EchoImpl, OtherBase)],
)
def test_unsupported_contract_sets_are_rejected(factory: ProxyFactory, types: tuple[type, ...]) -> None:
    """Verify rejected contract sets raise and leave no cache entry."""
    with pytest.raises(UnsupportedContractSet):
        factory.create_invoker_proxy(_answer, *types)
    assert factory.cache.size(proxysmith.default_loader()) == 0
    assert factory.can_proxy(*types) is False


def test_can_proxy(factory: ProxyFactory) -> None:
    """Verify ``can_proxy`` reports buildable and unbuildable contract sets."""
    assert factory.can_proxy(Echo) is True
    assert factory.can_proxy(Echo, AbstractEcho) is True
    assert factory.can_proxy(Metaclassed) is False
    assert factory.can_proxy() is False


def test_factory_rejects_bad_cache() -> None:
    """Verify the cache option is validated eagerly."""
    with pytest.raises(TypeError, match="ProxyClassCache"):
        ProxyFactory(cache={})  # type: ignore[arg-type]


def test_interceptor_argument_changes_reach_the_target(factory: ProxyFactory) -> None:
    """Verify argument changes made by an interceptor are what ``proceed`` passes on."""

    def change_argument(invocation: Invocation) -> object:
        invocation.arguments[0] = "something different"
        return invocation.proceed()

    proxy: Echo = factory.create_interceptor_proxy(EchoImpl(), change_argument, Echo)  # type: ignore[assignment]
    assert proxy.echo_back("whatever") == "something different"


def test_interceptor_may_proceed_many_times_or_never(factory: ProxyFactory) -> None:
    """Verify ``proceed`` is optional and repeatable."""

    def twice(invocation: Invocation) -> object:
        first: object = invocation.proceed()
        second: object = invocation.proceed()
        return f"{first}{second}"

    doubled: Echo = factory.create_interceptor_proxy(EchoImpl(), twice, Echo)  # type: ignore[assignment]
    assert doubled.echo_back("ab") == "abab"

    untargeted: Echo = factory.create_interceptor_proxy(None, lambda invocation: "fixed", Echo)  # type: ignore[assignment]
    assert untargeted.echo_back("ignored") == "fixed"


def test_interceptor_sees_the_invocation(factory: ProxyFactory) -> None:
    """Verify the invocation exposes the proxy, the method, and the target."""
    seen: list[Invocation] = []
    target: EchoImpl = EchoImpl()

    def capture(invocation: Invocation) -> object:
        seen.append(invocation)
        return invocation.proceed()

    proxy: object = factory.create_interceptor_proxy(target, capture, Echo)
    proxy.echo_back("x")  # type: ignore[attr-defined]
    assert seen[0].proxy is proxy
    assert seen[0].target is target
    assert seen[0].method.name == "echo_back"
    assert seen[0].method.declaring_class is Echo


@pytest.mark.parametrize("strategy", [0, 1, 2])
def test_declared_exception_passes_through(factory: ProxyFactory, strategy: int) -> None:
    """Verify a declared exception type reaches the caller unchanged."""

    def raise_io(invocation: Invocation) -> object:
        raise OSError("No file found")

    def invoke_io(proxy: object, method: MethodDescriptor, arguments: list[object]) -> object:
        raise OSError("No file found")

    proxies: list[object] = [
        factory.create_delegator_proxy(constant(EchoImpl()), Echo),
        factory.create_interceptor_proxy(EchoImpl(), raise_io, Echo),
        factory.create_invoker_proxy(invoke_io, Echo),
    ]
    with pytest.raises(OSError, match="No file found") as exc_info:
        proxies[strategy].io_exception()  # type: ignore[attr-defined]
    assert type(exc_info.value) is OSError


def test_unchecked_exception_passes_through(factory: ProxyFactory) -> None:
    """Verify programming errors are not wrapped even when undeclared."""
    proxy: object = factory.create_delegator_proxy(constant(EchoImpl()), Echo)
    with pytest.raises(ValueError, match="dummy message"):
        proxy.illegal_argument()  # type: ignore[attr-defined]


@pytest.mark.parametrize("strategy", [0, 1, 2])
def test_undeclared_checked_exception_is_wrapped(factory: ProxyFactory, strategy: int) -> None:
    """Verify undeclared exceptions become ``UndeclaredDispatchFailure`` for every strategy."""

    def invoke_undeclared(proxy: object, method: MethodDescriptor, arguments: list[object]) -> object:
        raise EchoError("not declared anywhere")

    proxies: list[object] = [
        factory.create_delegator_proxy(constant(EchoImpl()), Echo),
        factory.create_interceptor_proxy(EchoImpl(), _proceed, Echo),
        factory.create_invoker_proxy(invoke_undeclared, Echo),
    ]
    with pytest.raises(UndeclaredDispatchFailure) as exc_info:
        proxies[strategy].undeclared_failure()  # type: ignore[attr-defined]
    assert isinstance(exc_info.value.cause, EchoError) is True
    assert exc_info.value.__cause__ is exc_info.value.cause
    assert "Echo.undeclared_failure" in str(exc_info.value)


def test_subclass_of_declared_exception_is_wrapped(factory: ProxyFactory) -> None:
    """Verify only the exact declared type passes through."""
    proxy: object = factory.create_delegator_proxy(constant(SubclassedIOEcho()), Echo)
    with pytest.raises(UndeclaredDispatchFailure) as exc_info:
        proxy.io_exception()  # type: ignore[attr-defined]
    assert isinstance(exc_info.value.cause, FileNotFoundError) is True


def test_provider_failure_propagates_unchanged(factory: ProxyFactory) -> None:
    """Verify provider failures are not reported as target failures."""

    class BrokenProvider:
        def get(self) -> object:
            raise ProviderFailure("no target today")

    proxy: object = factory.create_delegator_proxy(BrokenProvider(), Echo)
    with pytest.raises(ProviderFailure, match="no target today"):
        proxy.echo_back("x")  # type: ignore[attr-defined]


def test_identity_equality_and_hash_for_every_strategy(factory: ProxyFactory) -> None:
    """Verify proxies compare and hash by identity without reaching user code."""
    for proxy in _proxies(factory, Echo):
        assert proxy == proxy
        assert hash(proxy) == object.__hash__(proxy)
        assert len({proxy, proxy}) == 1
    first, second, third = _proxies(factory, Echo)
    assert first != second
    assert second != third
    assert (first == EchoImpl()) is False


def test_handler_identity_methods_skip_user_code(factory: ProxyFactory) -> None:
    """Verify handlers answer identity methods themselves."""
    calls: list[str] = []

    def record(proxy: object, method: MethodDescriptor, arguments: list[object]) -> object:
        calls.append(method.name)
        return None

    proxy: object = factory.create_invoker_proxy(record, Echo)
    handler: object = proxysmith.get_handler(proxy)
    eq_method: MethodDescriptor = proxysmith.methods.EQUALS_METHOD
    hash_method: MethodDescriptor = proxysmith.methods.HASH_METHOD
    assert handler.invoke(proxy, eq_method, [proxy]) is True  # type: ignore[attr-defined]
    assert handler.invoke(proxy, eq_method, [object()]) is False  # type: ignore[attr-defined]
    assert handler.invoke(proxy, hash_method, []) == object.__hash__(proxy)  # type: ignore[attr-defined]
    assert calls == []


def test_base_class_equality_is_kept(factory: ProxyFactory) -> None:
    """Verify a base overriding ``__eq__``/``__hash__`` keeps its semantics."""
    first: object = factory.create_invoker_proxy(_answer, ValueEcho, Echo)
    second: object = factory.create_invoker_proxy(_answer, ValueEcho, Echo)
    assert first == second
    assert hash(first) == 42
    assert first.echo_back("x") == "value:x"  # type: ignore[attr-defined]


def test_module_level_api_uses_default_factory() -> None:
    """Verify the package-level helpers build working proxies."""
    proxy: object = proxysmith.create_delegator_proxy(EchoImpl, Echo)
    assert proxysmith.is_proxy(proxy) is True
    assert proxy.echo_back("hi") == "hi"  # type: ignore[attr-defined]
    assert proxysmith.get_proxy_class(Echo) is type(proxy)
    assert proxysmith.proxy_factory().get_proxy_class(Echo) is type(proxy)
    assert proxysmith.can_proxy(Echo, FinalEcho) is False
    invoker_proxy: object = proxysmith.create_invoker_proxy(_answer, Echo)
    assert invoker_proxy.echo_back("q") == "invoked"  # type: ignore[attr-defined]
    interceptor_proxy: object = proxysmith.create_interceptor_proxy(EchoImpl(), _proceed, Echo)
    assert interceptor_proxy.echo_back("r") == "r"  # type: ignore[attr-defined]
