import csv
import io
import tempfile
import unittest
from pathlib import Path

from contiguous_memory import CommandShell, OutOfSpaceError, Partition, UnknownOwnerError
from experiments.environment import Request, WorkloadGenerator
from experiments.strategy_comparison import ComparisonConfig, main, run_single


class WorkloadInvariantTests(unittest.TestCase):
    def test_invariants_hold_under_random_workloads(self) -> None:
        for strategy in ("F", "B", "W"):
            for seed in range(5):
                partition = Partition(1024)
                workload = WorkloadGenerator(seed=seed, max_size=200, compact_probability=0.1)
                for request in workload.stream(300):
                    try:
                        if request.op == "RQ":
                            partition.allocate(request.owner, request.size, strategy)
                        elif request.op == "RL":
                            partition.release(request.owner)
                        else:
                            partition.compact()
                    except (OutOfSpaceError, UnknownOwnerError):
                        pass
                    partition.check_invariants()

    def test_generator_is_deterministic(self) -> None:
        first = list(WorkloadGenerator(seed=7).stream(50))
        second = list(WorkloadGenerator(seed=7).stream(50))
        self.assertEqual(first, second)

    def test_releases_name_requested_owners(self) -> None:
        requested = set()
        for request in WorkloadGenerator(seed=3).stream(200):
            if request.op == "RQ":
                self.assertNotIn(request.owner, requested)
                requested.add(request.owner)
            elif request.op == "RL":
                self.assertIn(request.owner, requested)

    def test_request_as_command(self) -> None:
        self.assertEqual(Request(op="RQ", owner="P1", size=12).as_command("B"), "RQ P1 12 B")
        self.assertEqual(Request(op="RL", owner="P1").as_command("B"), "RL P1")
        self.assertEqual(Request(op="C").as_command("B"), "C")


class StrategyComparisonTests(unittest.TestCase):
    def test_summary_contains_core_metrics(self) -> None:
        config = ComparisonConfig(label="test_config", strategy="B", capacity=512, steps=60, compact_interval=10)
        summary = run_single(config, seed=123)
        self.assertEqual(summary["requests"], 60)
        self.assertGreaterEqual(summary["allocations"], 1)
        self.assertGreaterEqual(summary["compactions"], 6)
        self.assertGreaterEqual(summary["avg_fragmentation"], 0.0)
        self.assertLessEqual(summary["final_free_total"], 512)

    def test_workload_compactions_are_replayed(self) -> None:
        config = ComparisonConfig(label="compacting", strategy="F", capacity=512, steps=80, compact_probability=0.25)
        summary = run_single(config, seed=5)
        self.assertGreater(summary["compactions"], 0)
        self.assertLessEqual(summary["min_free_total"], summary["final_free_total"])
        self.assertGreaterEqual(summary["peak_fragmentation"], summary["final_fragmentation"])

    def test_script_replays_through_shell(self) -> None:
        config = ComparisonConfig(
            label="script",
            strategy="W",
            capacity=300,
            steps=60,
            compact_interval=7,
            compact_probability=0.1,
        )
        with tempfile.TemporaryDirectory() as tmpdir:
            summary = run_single(config, seed=11, script_dir=tmpdir)
            script = (Path(tmpdir) / "script_seed11.txt").read_text(encoding="utf-8")

        lines = script.splitlines()
        self.assertEqual(lines[-2:], ["STAT", "X"])
        self.assertTrue(all(line.split()[0] in {"RQ", "RL", "C", "STAT", "X"} for line in lines))
        self.assertEqual(sum(1 for line in lines if line == "C"), summary["compactions"])

        out = io.StringIO()
        partition = Partition(config.capacity)
        shell = CommandShell(partition, out=out, prompt="")
        for line in lines[:-1]:
            shell.execute(line)
        self.assertEqual(partition.free_total, summary["final_free_total"])
        self.assertEqual(len(partition), summary["final_segments"])
        self.assertIn(f"available space left: {summary['final_free_total']}", out.getvalue())
        self.assertEqual(
            out.getvalue().count("There is no space to place process"), summary["failures"]
        )

    def test_main_writes_summary(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "summary.csv"
            main(["--steps", "20", "--seeds", "2", "--capacity", "256", "--output", str(output)])
            with output.open(newline="") as handle:
                rows = list(csv.DictReader(handle))
        self.assertEqual(len(rows), 6)
        self.assertEqual({row["strategy"] for row in rows}, {"F", "B", "W"})


if __name__ == "__main__":
    unittest.main()
