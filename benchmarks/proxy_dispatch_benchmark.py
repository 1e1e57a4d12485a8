"""Per-call overhead benchmark for direct calls vs each proxysmith dispatch strategy."""

import argparse
import json
import pathlib
import statistics
import sys
import time
from collections.abc import Callable
from typing import Literal
from typing import Protocol

BenchmarkMode = Literal["direct", "delegator", "interceptor", "invoker"]
CaseRunner = Callable[[object, int], int]
REPO_ROOT: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
_MODES: tuple[BenchmarkMode, ...] = ("direct", "delegator", "interceptor", "invoker")

_CASE_ORDER: list[str] = [
    "tiny_call",
    "multi_argument",
    "varargs_join",
    "keyword_only",
    "class_synthesis",
]

_CASE_DESCRIPTIONS: dict[str, str] = {
    "tiny_call": "No-argument call returning an int.",
    "multi_argument": "Three positional arguments marshaled into one slot list.",
    "varargs_join": "Variadic call whose extra arguments travel as one tuple slot.",
    "keyword_only": "Keyword-only argument unmarshaled back into a keyword.",
    "class_synthesis": "Build a proxy class in a fresh cache, then make one call (cold path).",
}

_CASE_DEFAULT_ITERATIONS: dict[str, int] = {
    "tiny_call": 200_000,
    "multi_argument": 100_000,
    "varargs_join": 100_000,
    "keyword_only": 100_000,
    "class_synthesis": 200,
}

_CASE_QUICK_ITERATIONS: dict[str, int] = {
    "tiny_call": 20_000,
    "multi_argument": 10_000,
    "varargs_join": 10_000,
    "keyword_only": 10_000,
    "class_synthesis": 20,
}


def _ensure_repo_paths() -> None:
    """Ensure repository-local imports are resolvable for this process."""
    src_path: str = str(REPO_ROOT / "src")
    has_src_path: bool = src_path in sys.path
    if has_src_path is False:
        sys.path.insert(0, src_path)


class Workload(Protocol):
    """Contract whose methods each case calls."""

    def ping(self) -> int: ...

    def add(self, first: int, second: int, third: int) -> int: ...

    def join(self, *parts: str) -> str: ...

    def scale(self, value: int, *, factor: int = 1) -> int: ...


class WorkloadImpl:
    """Concrete workload used as the target of every strategy."""

    def ping(self) -> int:
        return 1

    def add(self, first: int, second: int, third: int) -> int:
        return first + second + third

    def join(self, *parts: str) -> str:
        return "".join(parts)

    def scale(self, value: int, *, factor: int = 1) -> int:
        return value * factor


def _run_case_tiny_call(workload: object, iterations: int) -> int:
    ping: Callable[[], int] = getattr(workload, "ping")
    total: int = 0
    for _ in range(iterations):
        total += ping()
    return total


def _run_case_multi_argument(workload: object, iterations: int) -> int:
    add: Callable[[int, int, int], int] = getattr(workload, "add")
    total: int = 0
    for index in range(iterations):
        total += add(index, 1, 2)
    return total


def _run_case_varargs_join(workload: object, iterations: int) -> int:
    join: Callable[..., str] = getattr(workload, "join")
    total: int = 0
    for _ in range(iterations):
        total += len(join("a", "b", "c"))
    return total


def _run_case_keyword_only(workload: object, iterations: int) -> int:
    scale: Callable[..., int] = getattr(workload, "scale")
    total: int = 0
    for index in range(iterations):
        total += scale(index, factor=2)
    return total


_CASE_RUNNERS: dict[str, CaseRunner] = {
    "tiny_call": _run_case_tiny_call,
    "multi_argument": _run_case_multi_argument,
    "varargs_join": _run_case_varargs_join,
    "keyword_only": _run_case_keyword_only,
}


def _build_workload(mode: BenchmarkMode, factory: object) -> object:
    """Build the object a case calls into for ``mode``.

    :param mode: Execution mode.
    :param factory: ``ProxyFactory`` used for proxied modes.
    :returns: Direct target or proxy.
    :raises ValueError: If ``mode`` is unknown.
    """
    from proxysmith.factory import ProxyFactory
    from proxysmith.invokers import DuckTypingInvoker
    from proxysmith.providers import constant

    if isinstance(factory, ProxyFactory) is False:
        raise TypeError("factory must be a ProxyFactory")
    target: WorkloadImpl = WorkloadImpl()
    if mode == "direct":
        return target
    if mode == "delegator":
        return factory.create_delegator_proxy(constant(target), Workload)
    if mode == "interceptor":
        return factory.create_interceptor_proxy(target, lambda invocation: invocation.proceed(), Workload)
    if mode == "invoker":
        return factory.create_invoker_proxy(DuckTypingInvoker(constant(target)), Workload)
    raise ValueError(f"Unknown mode: {mode}")


def _run_class_synthesis(mode: BenchmarkMode, iterations: int) -> int:
    """Time-inclusive cold path: a fresh cache per iteration.

    :param mode: Execution mode.
    :param iterations: Number of synthesized classes.
    :returns: Checksum of the calls made.
    """
    from proxysmith.cache import ProxyClassCache
    from proxysmith.factory import ProxyFactory

    total: int = 0
    for _ in range(iterations):
        factory: ProxyFactory = ProxyFactory(cache=ProxyClassCache())
        workload: object = _build_workload(mode, factory)
        total += _run_case_tiny_call(workload, 1)
    return total


def _time_case(mode: BenchmarkMode, case_name: str, iterations: int) -> tuple[float, int]:
    """Run one case once and time it.

    :param mode: Execution mode.
    :param case_name: Benchmark case name.
    :param iterations: Timed iterations.
    :returns: Elapsed seconds and the case checksum.
    """
    from proxysmith.cache import ProxyClassCache
    from proxysmith.factory import ProxyFactory

    if case_name == "class_synthesis":
        start: float = time.perf_counter()
        checksum: int = _run_class_synthesis(mode, iterations)
        return time.perf_counter() - start, checksum

    runner: CaseRunner = _CASE_RUNNERS[case_name]
    workload: object = _build_workload(mode, ProxyFactory(cache=ProxyClassCache()))
    runner(workload, min(iterations, 100))
    start = time.perf_counter()
    checksum = runner(workload, iterations)
    return time.perf_counter() - start, checksum


def _build_case_list(cases_arg: str | None) -> list[str]:
    """Build the ordered case list from user input.

    :param cases_arg: Optional comma-separated case names.
    :returns: Ordered case names.
    :raises ValueError: If unknown case names are requested.
    """
    if cases_arg is None:
        return list(_CASE_ORDER)

    requested: list[str] = []
    for raw_part in cases_arg.split(","):
        candidate: str = raw_part.strip()
        if len(candidate) == 0:
            continue
        known_case: bool = candidate in _CASE_DESCRIPTIONS
        if known_case is False:
            raise ValueError(f"Unknown case: {candidate}")
        already_seen: bool = candidate in requested
        if already_seen is False:
            requested.append(candidate)
    if len(requested) == 0:
        raise ValueError("No benchmark cases selected")
    return requested


def _scaled_iterations(base_iterations: int, scale: float) -> int:
    """Scale iteration counts while preserving a minimum of one iteration.

    :param base_iterations: Baseline iteration count.
    :param scale: Positive scale multiplier.
    :returns: Scaled iteration count.
    """
    scaled: int = int(base_iterations * scale)
    if scaled < 1:
        return 1
    return scaled


def _render_table(
    case_names: list[str],
    iteration_map: dict[str, int],
    us_per_op: dict[str, dict[str, float]],
) -> str:
    """Render a summary table of median microseconds per operation.

    :param case_names: Ordered case names.
    :param iteration_map: Iteration counts by case.
    :param us_per_op: Median microseconds per operation by case, then mode.
    :returns: Rendered table text.
    """
    header: str = (
        "Case                 Iter     Direct(us)  Delegator(us)  Interceptor(us)  Invoker(us)  "
        "Worst slowdown"
    )
    separator: str = "-" * len(header)
    lines: list[str] = [header, separator]
    for case_name in case_names:
        stats: dict[str, float] = us_per_op[case_name]
        direct: float = stats["direct"]
        worst: float = max(stats[mode] for mode in _MODES[1:])
        slowdown_x: float = worst / direct if direct > 0.0 else 0.0
        lines.append(
            f"{case_name:18} {iteration_map[case_name]:8d} "
            + f"{direct:12.3f} {stats['delegator']:14.3f} {stats['interceptor']:16.3f} "
            + f"{stats['invoker']:12.3f} {slowdown_x:14.2f}x"
        )
    return "\n".join(lines)


def _run(args: argparse.Namespace) -> int:
    """Run every selected case in every mode.

    :param args: Parsed CLI arguments.
    :returns: Process exit code.
    """
    repetitions: int = int(args.repetitions)
    iteration_scale: float = float(args.iteration_scale)
    quick: bool = bool(args.quick)
    if repetitions < 1:
        raise ValueError("repetitions must be >= 1")
    if iteration_scale <= 0.0:
        raise ValueError("iteration_scale must be > 0")

    selected_cases: list[str] = _build_case_list(args.cases)
    iteration_map: dict[str, int] = {}
    for case_name in selected_cases:
        base_iterations: int
        if quick is True:
            base_iterations = _CASE_QUICK_ITERATIONS[case_name]
        else:
            base_iterations = _CASE_DEFAULT_ITERATIONS[case_name]
        iteration_map[case_name] = _scaled_iterations(base_iterations, iteration_scale)

    us_per_op: dict[str, dict[str, float]] = {}
    raw_timings: dict[str, dict[str, list[float]]] = {}
    for case_name in selected_cases:
        iterations: int = iteration_map[case_name]
        us_per_op[case_name] = {}
        raw_timings[case_name] = {}
        checksums: dict[str, int] = {}
        for mode in _MODES:
            timings: list[float] = []
            for _ in range(repetitions):
                elapsed_seconds, checksum = _time_case(mode, case_name, iterations)
                timings.append(elapsed_seconds)
                checksums[mode] = checksum
            raw_timings[case_name][mode] = timings
            us_per_op[case_name][mode] = (statistics.median(timings) / iterations) * 1_000_000.0

        distinct_checksums: set[int] = set(checksums.values())
        if len(distinct_checksums) != 1:
            raise ValueError(f"Result mismatch for case {case_name}: {checksums}")

    print("Proxysmith Dispatch Benchmark")
    print(f"python={sys.version.split()[0]} repetitions={repetitions} quick={quick} scale={iteration_scale}")
    print("")
    print(_render_table(selected_cases, iteration_map, us_per_op))
    print("")
    print("Case descriptions:")
    for case_name in selected_cases:
        print(f"- {case_name}: {_CASE_DESCRIPTIONS[case_name]}")

    json_output_obj: object = args.json_output
    if isinstance(json_output_obj, str) is True:
        payload: dict[str, object] = {
            "repetitions": repetitions,
            "quick": quick,
            "iteration_scale": iteration_scale,
            "cases": selected_cases,
            "iterations": iteration_map,
            "us_per_op": us_per_op,
            "raw_timings": raw_timings,
        }
        json_path: pathlib.Path = pathlib.Path(json_output_obj)
        json_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        print("")
        print(f"Wrote raw benchmark JSON: {json_path}")
    return 0


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments.

    :returns: Parsed arguments.
    """
    parser = argparse.ArgumentParser(
        description="Compare direct calls against delegator, interceptor, and invoker proxies."
    )
    parser.add_argument("--repetitions", type=int, default=5, help="Repetitions per mode/case.")
    parser.add_argument("--quick", action="store_true", help="Run lower-iteration quick settings.")
    parser.add_argument("--cases", type=str, default=None, help="Comma-separated subset of cases to run.")
    parser.add_argument(
        "--iteration-scale",
        type=float,
        default=1.0,
        help="Multiply per-case iteration counts by this scale.",
    )
    parser.add_argument(
        "--json-output",
        type=str,
        default=None,
        help="Optional path to write raw benchmark output as JSON.",
    )
    return parser.parse_args()


def main() -> int:
    """Run the benchmark.

    :returns: Process exit code.
    """
    _ensure_repo_paths()
    return _run(_parse_args())


if __name__ == "__main__":
    raise SystemExit(main())
