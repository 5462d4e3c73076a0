#!/usr/bin/env python3
"""
Strata Performance Benchmarks

Measures the cost of the dispatch cycle under a few shapes of state tree and
prints the results as a rich table.

Usage:
    python scripts/benchmark.py                # Run all benchmarks
    python scripts/benchmark.py --dispatches 5000
    python scripts/benchmark.py --config       # Show benchmark configuration

Configuration:
    Adjust the constants at the top of the file to change benchmark parameters.
"""

import argparse
import time
from dataclasses import dataclass
from typing import Callable, List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table, box

from strata import create_selector, create_store, define_slice, observe

# Benchmark parameters
DISPATCHES = 20_000
SLICE_COUNT = 50
ITEMS_PER_SLICE = 1_000
OBSERVERS = 200

console = Console()


@dataclass
class BenchmarkResult:
    """Timing for one benchmark."""

    name: str
    operations: int
    seconds: float

    @property
    def ops_per_second(self) -> float:
        return self.operations / self.seconds if self.seconds else float("inf")

    @property
    def micros_per_op(self) -> float:
        return self.seconds / self.operations * 1e6 if self.operations else 0.0


def _time(name: str, operations: int, fn: Callable[[], None]) -> BenchmarkResult:
    start = time.perf_counter()
    fn()
    return BenchmarkResult(name, operations, time.perf_counter() - start)


def _counter_slices(count: int):
    return [
        define_slice(
            f"counter{i}",
            {"value": 0, "items": list(range(ITEMS_PER_SLICE))},
            {"increment": lambda state, action: state.update(value=state["value"] + 1)},
        )
        for i in range(count)
    ]


def bench_single_slice(dispatches: int) -> BenchmarkResult:
    (counter,) = _counter_slices(1)
    store = create_store([counter])
    action = counter.actions.increment()

    def run():
        for _ in range(dispatches):
            store.dispatch(action)

    return _time("single slice, no observers", dispatches, run)


def bench_wide_tree(dispatches: int) -> BenchmarkResult:
    slices = _counter_slices(SLICE_COUNT)
    store = create_store(slices)
    action = slices[0].actions.increment()

    def run():
        for _ in range(dispatches):
            store.dispatch(action)

    return _time(f"{SLICE_COUNT} slices, one changes", dispatches, run)


def bench_unknown_action(dispatches: int) -> BenchmarkResult:
    slices = _counter_slices(SLICE_COUNT)
    store = create_store(slices)
    action = define_slice("other", 0, {"noop": lambda s, a: s}).actions.noop()

    def run():
        for _ in range(dispatches):
            store.dispatch(action)

    return _time(f"{SLICE_COUNT} slices, unknown action", dispatches, run)


def bench_observers(dispatches: int) -> BenchmarkResult:
    slices = _counter_slices(SLICE_COUNT)
    store = create_store(slices)
    for i in range(OBSERVERS):
        name = slices[i % SLICE_COUNT].name
        observe(store, lambda state, name=name: state[name]["value"], lambda v: None)
    action = slices[0].actions.increment()

    def run():
        for _ in range(dispatches):
            store.dispatch(action)

    return _time(f"{OBSERVERS} selector observers", dispatches, run)


def bench_memoized_selector(dispatches: int) -> BenchmarkResult:
    slices = _counter_slices(2)
    store = create_store(slices)
    total = create_selector(
        lambda state: state[slices[1].name]["items"], lambda items: sum(items)
    )
    observe(store, total, lambda v: None)
    action = slices[0].actions.increment()

    def run():
        for _ in range(dispatches):
            store.dispatch(action)

    return _time("memoised selector, input unchanged", dispatches, run)


BENCHMARKS = [
    bench_single_slice,
    bench_wide_tree,
    bench_unknown_action,
    bench_observers,
    bench_memoized_selector,
]


def render(results: List[BenchmarkResult]) -> None:
    table = Table(title="Strata dispatch benchmarks", box=box.SIMPLE_HEAVY)
    table.add_column("Benchmark", style="cyan")
    table.add_column("Dispatches", justify="right")
    table.add_column("Total (s)", justify="right")
    table.add_column("µs / dispatch", justify="right", style="green")
    table.add_column("dispatch / s", justify="right", style="magenta")
    for result in results:
        table.add_row(
            result.name,
            f"{result.operations:,}",
            f"{result.seconds:.3f}",
            f"{result.micros_per_op:.2f}",
            f"{result.ops_per_second:,.0f}",
        )
    console.print(table)


def show_config() -> None:
    console.print(
        Panel(
            f"dispatches={DISPATCHES:,}\nslices={SLICE_COUNT}\n"
            f"items per slice={ITEMS_PER_SLICE:,}\nobservers={OBSERVERS}",
            title="Benchmark configuration",
        )
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Strata dispatch benchmarks")
    parser.add_argument("--dispatches", type=int, default=DISPATCHES)
    parser.add_argument("--config", action="store_true", help="show configuration")
    args = parser.parse_args()

    if args.config:
        show_config()
        return

    results = []
    with console.status("Running benchmarks..."):
        for bench in BENCHMARKS:
            results.append(bench(args.dispatches))
    render(results)


if __name__ == "__main__":
    main()
