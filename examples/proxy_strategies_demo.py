"""Show the three proxysmith dispatch strategies on one small contract."""

import argparse
import logging
import pathlib
import sys
from typing import Protocol

GREETING_PREFIX: str = "Hello"


def _ensure_src_path(src_path: str) -> None:
    """Ensure ``src`` is importable in the current interpreter.

    :param src_path: Absolute path to the repository ``src`` directory.
    """
    exists: bool = src_path in sys.path
    if exists is False:
        sys.path.insert(0, src_path)


class Greeter(Protocol):
    """Contract proxied by every phase of the demo."""

    def greet(self, name: str) -> str: ...

    def greeting_count(self) -> int: ...


class CountingGreeter:
    """Concrete greeter that remembers how often it greeted."""

    greetings: int

    def __init__(self) -> None:
        """Initialize the greeter with no greetings."""
        self.greetings = 0

    def greet(self, name: str) -> str:
        self.greetings += 1
        return f"{GREETING_PREFIX}, {name}!"

    def greeting_count(self) -> int:
        return self.greetings


class LooseGreeter:
    """Unrelated class that only happens to have a ``greet`` method."""

    def greet(self, name: str) -> str:
        return f"Hi {name}"


def _run_delegator_phase(names: list[str]) -> bool:
    """Route calls through a delegator backed by a singleton provider.

    :param names: Names to greet.
    :returns: Whether every call reached the one shared target.
    """
    import proxysmith
    from proxysmith.providers import bean
    from proxysmith.providers import singleton

    proxy: Greeter = proxysmith.create_delegator_proxy(singleton(bean(CountingGreeter)), Greeter)
    greetings: list[str] = [proxy.greet(name) for name in names]
    count: int = proxy.greeting_count()
    print(f"  class={type(proxy).__qualname__} greetings={greetings} count={count}")
    expected: list[str] = [f"{GREETING_PREFIX}, {name}!" for name in names]
    return greetings == expected and count == len(names)


def _run_interceptor_phase(names: list[str], logger: logging.Logger) -> bool:
    """Route calls through a logging interceptor and a switch that overrides one name.

    :param names: Names to greet.
    :param logger: Logger receiving the call records.
    :returns: Whether overridden and proceeded calls both answered as expected.
    """
    import proxysmith
    from proxysmith.interceptors import ArgumentsMatcher
    from proxysmith.interceptors import InterceptorChain
    from proxysmith.interceptors import LoggingInterceptor
    from proxysmith.interceptors import SwitchInterceptor
    from proxysmith.interceptors import constant
    from proxysmith.interceptors import eq

    overridden_name: str = names[0]
    switch: SwitchInterceptor = SwitchInterceptor()
    switch.when(ArgumentsMatcher(eq(overridden_name))).then(constant("(greeting suppressed)"))
    chain: InterceptorChain = InterceptorChain(LoggingInterceptor(logger=logger, level=logging.INFO), switch)

    target: CountingGreeter = CountingGreeter()
    proxy: Greeter = proxysmith.create_interceptor_proxy(target, chain, Greeter)
    greetings: list[str] = [proxy.greet(name) for name in names]
    print(f"  greetings={greetings} target_count={target.greetings}")
    return greetings[0] == "(greeting suppressed)" and target.greetings == len(names) - 1


def _run_invoker_phase(names: list[str]) -> bool:
    """Route calls through a duck-typing invoker and record a second proxy's calls.

    :param names: Names to greet.
    :returns: Whether duck typing answered and unsupported calls failed clearly.
    """
    import proxysmith
    from proxysmith.invokers import DuckTypingInvoker
    from proxysmith.invokers import InvocationRecorder

    proxy: Greeter = proxysmith.create_invoker_proxy(DuckTypingInvoker(LooseGreeter), Greeter)
    greetings: list[str] = [proxy.greet(name) for name in names]
    unsupported_ok: bool = False
    try:
        proxy.greeting_count()
    except NotImplementedError as exc:
        print(f"  unsupported call: {exc}")
        unsupported_ok = True

    recorder: InvocationRecorder = InvocationRecorder()
    recording: Greeter = recorder.proxy(Greeter)  # type: ignore[assignment]
    for name in names:
        recording.greet(name)
    recorded: list[str] = [str(invocation) for invocation in recorder.recorded_invocations]
    print(f"  greetings={greetings}")
    print(f"  recorded={recorded}")
    return greetings == [f"Hi {name}" for name in names] and unsupported_ok is True and len(recorded) == len(names)


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments.

    :returns: Parsed arguments.
    """
    parser = argparse.ArgumentParser(description="Demonstrate delegator, interceptor, and invoker proxies.")
    parser.add_argument(
        "--names",
        type=str,
        default="Ada,Grace,Linus",
        help="Comma-separated names to greet.",
    )
    parser.add_argument("--verbose", action="store_true", help="Print the interceptor call log.")
    return parser.parse_args()


def main() -> int:
    """Run the full demonstration.

    :returns: Process exit code where ``0`` indicates success.
    """
    args: argparse.Namespace = _parse_args()
    names: list[str] = [name.strip() for name in str(args.names).split(",") if name.strip() != ""]
    if len(names) == 0:
        print("names must not be empty")
        return 1

    repo_root: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
    _ensure_src_path(str(repo_root / "src"))

    logger: logging.Logger = logging.getLogger("proxysmith.demo")
    if args.verbose is True:
        logging.basicConfig(level=logging.INFO, format="    %(name)s %(message)s")

    print("Proxysmith Strategies Demo")
    print(f"python={sys.version.split()[0]} names={names}")
    print("")

    print("[delegator]")
    delegator_ok: bool = _run_delegator_phase(names)
    print("[interceptor]")
    interceptor_ok: bool = _run_interceptor_phase(names, logger)
    print("[invoker]")
    invoker_ok: bool = _run_invoker_phase(names)
    print("")

    demo_passes: bool = delegator_ok is True and interceptor_ok is True and invoker_ok is True
    if demo_passes is True:
        print("DEMO RESULT: PASS")
        return 0

    print("DEMO RESULT: FAIL")
    print(f"  delegator_ok={delegator_ok} interceptor_ok={interceptor_ok} invoker_ok={invoker_ok}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
