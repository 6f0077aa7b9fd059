from __future__ import annotations

import argparse
import csv
import os
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from contiguous_memory import AllocationError, Partition
from contiguous_memory.allocators import STRATEGIES
from contiguous_memory.errors import OutOfSpaceError, UnknownOwnerError
from experiments.environment import WorkloadGenerator
from experiments.instrumentation import MemoryProfiler


@dataclass
class ComparisonConfig:
    label: str
    strategy: str
    capacity: int = 4096
    steps: int = 200
    compact_interval: int = 0
    compact_probability: float = 0.0
    min_size: int = 8
    max_size: int = 256
    release_probability: float = 0.35


def run_single(
    config: ComparisonConfig,
    seed: int,
    *,
    trace_dir: Optional[str] = None,
    script_dir: Optional[str] = None,
) -> Dict[str, float]:
    """
    Replay one seeded workload against a fresh partition and summarise it.

    With `script_dir`, the same workload is also written as shell commands to
    `<label>_seed<seed>.txt`, ready for `allocator <capacity> < script`.
    """
    profiler = MemoryProfiler(run_id=f"{config.label}_seed{seed}", output_dir=trace_dir)
    partition = Partition(config.capacity, profiler=profiler)
    workload = WorkloadGenerator(
        seed=seed,
        min_size=config.min_size,
        max_size=config.max_size,
        release_probability=config.release_probability,
        compact_probability=config.compact_probability,
    )

    allocations = 0
    releases = 0
    compactions = 0
    fragmentation_sum = 0.0
    observations = 0
    commands: List[str] = []

    for step, request in enumerate(workload.stream(config.steps), start=1):
        commands.append(request.as_command(config.strategy))
        try:
            if request.op == "RQ":
                partition.allocate(request.owner, request.size, config.strategy)
                allocations += 1
            elif request.op == "RL":
                partition.release(request.owner)
                releases += 1
            else:
                partition.compact()
                compactions += 1
        except (OutOfSpaceError, UnknownOwnerError):
            # Recorded by the profiler; a release after a failed request has nothing to free.
            pass

        if config.compact_interval and step % config.compact_interval == 0:
            commands.append("C")
            partition.compact()
            compactions += 1

        fragmentation_sum += partition.fragmentation()
        observations += 1

    if trace_dir:
        profiler.flush()
    if script_dir:
        write_script(os.path.join(script_dir, f"{config.label}_seed{seed}.txt"), commands)

    free_series = profiler.series("free_total")
    return {
        "config": config.label,
        "strategy": config.strategy,
        "seed": seed,
        "requests": config.steps,
        "allocations": allocations,
        "failures": profiler.failures().get("out_of_space", 0),
        "releases": releases,
        "compactions": compactions,
        "avg_fragmentation": fragmentation_sum / observations if observations else 0.0,
        "peak_fragmentation": max(profiler.series("fragmentation"), default=0.0),
        "min_free_total": min(free_series, default=config.capacity),
        "final_free_total": partition.free_total,
        "final_fragmentation": partition.fragmentation(),
        "final_segments": len(partition),
    }


def write_script(path: str, commands: Iterable[str]) -> None:
    """Write a replayable command script that ends with STAT and X."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        for command in commands:
            handle.write(command + "\n")
        handle.write("STAT\nX\n")


def build_default_configs(args: argparse.Namespace) -> List[ComparisonConfig]:
    configs = [
        ComparisonConfig(label=allocator.name, strategy=code)
        for code, allocator in STRATEGIES.items()
    ]
    for config in configs:
        config.steps = args.steps
        config.compact_interval = args.compact_interval
        config.compact_probability = args.compact_probability
        if args.capacity:
            config.capacity = args.capacity
    return configs


def write_summary(path: str, records: Iterable[Dict[str, float]]) -> None:
    records = list(records)
    if not records:
        return
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=list(records[0].keys()))
        writer.writeheader()
        writer.writerows(records)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compare placement strategies under synthetic workloads.")
    parser.add_argument("--steps", type=int, default=200, help="Number of requests per run.")
    parser.add_argument("--seeds", type=int, default=5, help="Number of random seeds to evaluate.")
    parser.add_argument("--seed-offset", type=int, default=0, help="Offset applied to generated seeds.")
    parser.add_argument("--capacity", type=int, default=None, help="Override address space size for all configs.")
    parser.add_argument(
        "--compact-interval",
        type=int,
        default=0,
        help="Compact every N requests (0 disables periodic compaction).",
    )
    parser.add_argument(
        "--compact-probability",
        type=float,
        default=0.0,
        help="Probability that a workload step is a C request.",
    )
    parser.add_argument("--output", type=str, default="results/strategies.csv", help="Path to CSV summary output.")
    parser.add_argument("--trace-dir", type=str, default=None, help="Optional directory for per-run event logs.")
    parser.add_argument(
        "--script-dir",
        type=str,
        default=None,
        help="Optional directory for per-run command scripts replayable with the allocator shell.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    configs = build_default_configs(args)
    seeds = [args.seed_offset + index for index in range(args.seeds)]

    summaries: List[Dict[str, float]] = []
    for config in configs:
        for seed in seeds:
            try:
                summaries.append(run_single(config, seed, trace_dir=args.trace_dir, script_dir=args.script_dir))
            except AllocationError as exc:
                print(f"[{config.label} seed={seed}] aborted: {exc}")

    write_summary(args.output, summaries)

    for summary in summaries:
        print(
            f"[{summary['config']} seed={summary['seed']}] "
            f"allocations={summary['allocations']} failures={summary['failures']} "
            f"avg_fragmentation={summary['avg_fragmentation']:.3f} "
            f"final_free={summary['final_free_total']}"
        )


if __name__ == "__main__":
    main()
