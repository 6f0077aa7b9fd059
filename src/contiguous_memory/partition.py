from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Tuple, Union

from .allocators import Allocator, get_allocator
from .errors import (
    DuplicateOwnerError,
    InvalidSizeError,
    InvalidStrategyError,
    OutOfSpaceError,
    UnknownOwnerError,
)

if TYPE_CHECKING:
    from experiments.instrumentation import MemoryProfiler


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


@dataclass(slots=True)
class Segment:
    """
    Contiguous run of addresses with a single owner.

    Both bounds are inclusive, so a segment always holds at least one address.
    An owner of None marks the segment as a hole.
    """

    start: int
    end: int
    owner: Optional[str] = None

    @property
    def size(self) -> int:
        return self.end - self.start + 1

    @property
    def is_free(self) -> bool:
        return self.owner is None

    def split(self, size: int) -> Tuple["Segment", Optional["Segment"]]:
        """Return the first `size` addresses plus the remainder, if any."""
        allocated = Segment(start=self.start, end=self.start + size - 1, owner=self.owner)
        if size >= self.size:
            return allocated, None
        remainder = Segment(start=allocated.end + 1, end=self.end)
        return allocated, remainder

    def move_to(self, start: int) -> None:
        """Relocate the segment so it begins at `start`, keeping its size."""
        size = self.size
        self.start = start
        self.end = start + size - 1


@dataclass
class PartitionReport:
    free_total: int
    segments: List[Tuple[int, int, Optional[str]]] = field(default_factory=list)


class Partition:
    """
    Simulated contiguous address space split into allocated segments and holes.

    Segments are kept in a list sorted by address with no gaps between them,
    and no two holes are ever adjacent. `free_total` is maintained on every
    allocate and release so reporting does not need to rescan the list.
    Failed operations raise before touching the list.
    """

    def __init__(self, total_size: int, *, profiler: Optional["MemoryProfiler"] = None) -> None:
        if not _is_positive_int(total_size):
            raise InvalidSizeError(total_size)
        self.total_size = total_size
        self.profiler = profiler
        self._segments: List[Segment] = [Segment(0, total_size - 1)]
        self.free_total = total_size

    # -- Allocation -----------------------------------------------------------------
    def allocate(self, owner: str, size: int, strategy: Union[str, Allocator] = "F") -> Segment:
        """
        Place `owner` in a hole chosen by `strategy` (F, B, W or an Allocator).

        The chosen hole is split: its first `size` addresses go to the owner and
        any remainder stays free right after it. Returns a copy of the new segment.
        """
        if not isinstance(owner, str) or not owner:
            raise TypeError(f"owner must be a non-empty process id string, got {owner!r}")
        if not _is_positive_int(size):
            self._record("allocate_failed", {"owner": owner, "size": size, "reason": "invalid_size"})
            raise InvalidSizeError(size)
        if owner in self:
            self._record("allocate_failed", {"owner": owner, "size": size, "reason": "duplicate"})
            raise DuplicateOwnerError(owner)
        try:
            allocator = get_allocator(strategy)
        except InvalidStrategyError:
            self._record(
                "allocate_failed",
                {"owner": owner, "size": size, "strategy": str(strategy), "reason": "invalid_strategy"},
            )
            raise

        candidates = [
            (index, segment)
            for index, segment in enumerate(self._segments)
            if segment.is_free and segment.size >= size
        ]
        if not candidates:
            self._record(
                "allocate_failed",
                {"owner": owner, "size": size, "strategy": allocator.name, "reason": "out_of_space"},
            )
            raise OutOfSpaceError(owner, size)

        index = allocator.choose(candidates)
        allocated, remainder = self._segments[index].split(size)
        allocated.owner = owner
        if remainder is None:
            self._segments[index] = allocated
        else:
            self._segments[index : index + 1] = [allocated, remainder]
        self.free_total -= size

        self._record(
            "allocate",
            {"owner": owner, "size": size, "strategy": allocator.name, "start": allocated.start},
        )
        return replace(allocated)

    # -- Release --------------------------------------------------------------------
    def release(self, owner: str) -> Segment:
        """Free the segment held by `owner` and merge it with neighbouring holes."""
        index = self.find(owner)
        if index is None:
            self._record("release_failed", {"owner": owner})
            raise UnknownOwnerError(owner)
        segment = self._segments[index]
        segment.owner = None
        self.free_total += segment.size
        payload = {"owner": owner, "size": segment.size, "start": segment.start}
        merged = self._segments[self._coalesce(index)]
        self._record("release", payload)
        return replace(merged)

    def _coalesce(self, index: int) -> int:
        """Merge the hole at `index` with free neighbours; return its new index."""
        segment = self._segments[index]
        if index > 0 and self._segments[index - 1].is_free:
            previous = self._segments[index - 1]
            previous.end = segment.end
            del self._segments[index]
            index -= 1
            segment = previous
        if index + 1 < len(self._segments) and self._segments[index + 1].is_free:
            segment.end = self._segments[index + 1].end
            del self._segments[index + 1]
        return index

    # -- Compaction -----------------------------------------------------------------
    def compact(self) -> int:
        """
        Slide allocated segments toward address 0 in a single forward pass.

        A hole directly followed by an allocated segment trades places with it,
        then absorbs any hole it lands next to. The cursor follows the moved
        segment, so one hole keeps travelling right until it reaches the end of
        the list. Returns the number of swaps performed.
        """
        swaps = 0
        cursor = -1  # virtual head in front of the first segment
        while cursor + 1 < len(self._segments):
            hole_index = self._next_swap(cursor)
            if hole_index is None:
                cursor += 1
                continue
            self._swap(hole_index)
            swaps += 1
            self._coalesce(hole_index + 1)
            cursor = hole_index
        self._record("compact", {"swaps": swaps, "segments": len(self._segments)})
        return swaps

    def _next_swap(self, cursor: int) -> Optional[int]:
        nxt = self._segments[cursor + 1]
        if cursor >= 0 and self._segments[cursor].is_free and not nxt.is_free:
            return cursor
        after = cursor + 2
        if nxt.is_free and after < len(self._segments) and not self._segments[after].is_free:
            return cursor + 1
        return None

    def _swap(self, hole_index: int) -> None:
        hole = self._segments[hole_index]
        moved = self._segments[hole_index + 1]
        start = hole.start
        moved.move_to(start)
        hole.move_to(moved.end + 1)
        self._segments[hole_index], self._segments[hole_index + 1] = moved, hole

    # -- Introspection -------------------------------------------------------------
    def report(self) -> PartitionReport:
        return PartitionReport(
            free_total=self.free_total,
            segments=[(segment.start, segment.end, segment.owner) for segment in self._segments],
        )

    def find(self, owner: str) -> Optional[int]:
        for index, segment in enumerate(self._segments):
            if not segment.is_free and segment.owner == owner:
                return index
        return None

    def available(self) -> int:
        return self.free_total

    def allocated(self) -> int:
        return self.total_size - self.free_total

    def free_segments(self) -> List[Segment]:
        """Return copies of the holes in address order."""
        return [replace(segment) for segment in self._segments if segment.is_free]

    def largest_hole(self) -> int:
        return max((segment.size for segment in self._segments if segment.is_free), default=0)

    def fragmentation(self) -> float:
        if self.free_total == 0:
            return 0.0
        return 1.0 - (self.largest_hole() / self.free_total)

    def snapshot(self) -> Dict[str, List[Tuple[Any, ...]]]:
        """Expose current allocation map for diagnostics."""
        return {
            "allocated": [
                (segment.owner, segment.start, segment.size)
                for segment in self._segments
                if not segment.is_free
            ],
            "free": [(segment.start, segment.size) for segment in self._segments if segment.is_free],
        }

    def check_invariants(self) -> None:
        """Raise AssertionError if the segment list is inconsistent."""
        segments = self._segments
        if not segments:
            raise AssertionError("partition has no segments")
        if segments[0].start != 0:
            raise AssertionError(f"first segment starts at {segments[0].start}, expected 0")
        if segments[-1].end != self.total_size - 1:
            raise AssertionError(
                f"last segment ends at {segments[-1].end}, expected {self.total_size - 1}"
            )
        owners = set()
        free_sum = 0
        for index, segment in enumerate(segments):
            if segment.start > segment.end:
                raise AssertionError(f"segment {index} is empty: {segment}")
            if index > 0:
                previous = segments[index - 1]
                if previous.end + 1 != segment.start:
                    raise AssertionError(f"gap or overlap between {previous} and {segment}")
                if previous.is_free and segment.is_free:
                    raise AssertionError(f"adjacent holes {previous} and {segment}")
            if segment.is_free:
                free_sum += segment.size
            elif segment.owner in owners:
                raise AssertionError(f"owner {segment.owner} appears twice")
            else:
                owners.add(segment.owner)
        if free_sum != self.free_total:
            raise AssertionError(f"free_total is {self.free_total}, holes sum to {free_sum}")

    def clear(self) -> None:
        """Drop every segment and return to a single hole spanning the space."""
        self._segments = [Segment(0, self.total_size - 1)]
        self.free_total = self.total_size

    def __contains__(self, owner: object) -> bool:
        return owner is not None and self.find(owner) is not None

    def __len__(self) -> int:
        return len(self._segments)

    def __iter__(self) -> Iterator[Segment]:
        return (replace(segment) for segment in self._segments)

    def _record(self, event: str, payload: Dict[str, Any]) -> None:
        if not self.profiler:
            return
        self.profiler.record_event(
            event,
            {
                **payload,
                "free_total": self.free_total,
                "fragmentation": self.fragmentation(),
            },
        )
