from __future__ import annotations

import argparse
import sys
from typing import TYPE_CHECKING, List, Optional, Sequence, TextIO

from .errors import (
    DuplicateOwnerError,
    InvalidSizeError,
    InvalidStrategyError,
    OutOfSpaceError,
    UnknownOwnerError,
)
from .partition import Partition

if TYPE_CHECKING:
    from experiments.instrumentation import MemoryProfiler

FREE_LABEL = "Unused"
MAX_OWNER_LENGTH = 99

RQ_USAGE = "Usage: RQ <process> <size> <F|B|W>"
RL_USAGE = "Usage: RL <process>"


class CommandShell:
    """
    Line-oriented front end for a Partition.

    Each line is one command: RQ, RL, C, STAT or X. The shell calls exactly one
    partition operation per line and turns its outcome into the user-facing
    text; the partition itself never formats anything.
    """

    def __init__(self, partition: Partition, *, out: Optional[TextIO] = None, prompt: str = "allocator>") -> None:
        self.partition = partition
        self.out = out if out is not None else sys.stdout
        self.prompt = prompt

    def execute(self, line: str) -> bool:
        """Run one command line. Returns False once the shell should stop."""
        tokens = line.split()
        if not tokens:
            return True
        verb, args = tokens[0], tokens[1:]
        if verb == "X":
            return False
        if verb == "RQ":
            self._request(args)
        elif verb == "RL":
            self._release(args)
        elif verb == "C":
            self.partition.compact()
        elif verb == "STAT":
            self._status()
        else:
            self._print("This command is not recognized, try again")
        return True

    def run(self, stream: TextIO) -> None:
        """Read commands from `stream` until X or end of input, then tear down."""
        try:
            self._prompt()
            for line in stream:
                if not self.execute(line):
                    break
                self._prompt()
        finally:
            self.partition.clear()

    # -- Commands -------------------------------------------------------------------
    def _request(self, args: List[str]) -> None:
        if len(args) != 3 or not _valid_owner(args[0]):
            self._print(RQ_USAGE)
            return
        owner, raw_size, strategy = args
        try:
            size = int(raw_size)
        except ValueError:
            self._print(RQ_USAGE)
            return
        try:
            self.partition.allocate(owner, size, strategy)
        except InvalidSizeError:
            self._print(RQ_USAGE)
        except DuplicateOwnerError:
            self._print(f"Process {owner} already in memory. Try again")
        except InvalidStrategyError:
            self._print("Choose between best_fit, worst_fit, and first_fit. Try again")
        except OutOfSpaceError as exc:
            self._print(f"There is no space to place process {exc.owner}, of {exc.size} bytes")

    def _release(self, args: List[str]) -> None:
        if len(args) != 1 or not _valid_owner(args[0]):
            self._print(RL_USAGE)
            return
        try:
            self.partition.release(args[0])
        except UnknownOwnerError as exc:
            self._print(f"There is no process {exc.owner} in memory")

    def _status(self) -> None:
        report = self.partition.report()
        self._print(f"available space left: {report.free_total}")
        for start, end, owner in report.segments:
            label = owner if owner is not None else FREE_LABEL
            self._print(f"Addresses [{start} : {end}] Process {label}")

    def _print(self, message: str) -> None:
        print(message, file=self.out)

    def _prompt(self) -> None:
        if self.prompt:
            self.out.write(self.prompt)
            self.out.flush()


def _valid_owner(owner: str) -> bool:
    return 0 < len(owner) <= MAX_OWNER_LENGTH and owner.isprintable() and owner != FREE_LABEL


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid size: {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"size must be positive, got {number}")
    return number


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="allocator",
        description="Simulate contiguous memory allocation with first, best and worst fit.",
    )
    parser.add_argument("total_size", type=_positive_int, help="Size of the address space in bytes.")
    parser.add_argument(
        "--trace-dir",
        type=str,
        default=None,
        help="Optional directory to write the allocation event log (JSONL and CSV).",
    )
    parser.add_argument("--run-id", type=str, default="allocator", help="Name used for event log files.")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None, stdin: Optional[TextIO] = None) -> int:
    args = parse_args(argv)
    profiler: Optional["MemoryProfiler"] = None
    if args.trace_dir:
        from experiments.instrumentation import MemoryProfiler

        profiler = MemoryProfiler(run_id=args.run_id, output_dir=args.trace_dir)
    partition = Partition(args.total_size, profiler=profiler)
    shell = CommandShell(partition)
    try:
        shell.run(stdin if stdin is not None else sys.stdin)
    finally:
        if profiler:
            profiler.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
