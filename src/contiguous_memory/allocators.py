from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, List, Tuple, Type, Union

from .errors import InvalidStrategyError

if TYPE_CHECKING:
    from .partition import Segment

Candidate = Tuple[int, "Segment"]


class Allocator(ABC):
    """Abstract placement strategy."""

    code: str = ""
    name: str = ""

    @abstractmethod
    def choose(self, candidates: List[Candidate]) -> int:
        """
        Pick one hole among `candidates` and return its index in the partition.

        Candidates are (index, segment) pairs in address order, all of them
        free and large enough for the request. The list is never empty.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class FirstFitAllocator(Allocator):
    """
    First-fit: take the lowest-addressed hole that fits. Cheapest scan, tends
    to leave small slivers near the start of the address space.
    """

    code = "F"
    name = "first_fit"

    def choose(self, candidates: List[Candidate]) -> int:
        return candidates[0][0]


class BestFitAllocator(Allocator):
    """
    Best-fit: choose the smallest hole that can hold the request.
    Ties go to the lowest address.
    """

    code = "B"
    name = "best_fit"

    def choose(self, candidates: List[Candidate]) -> int:
        index, _ = min(candidates, key=lambda item: item[1].size)
        return index


class WorstFitAllocator(Allocator):
    """
    Worst-fit: carve the request out of the largest hole so the leftover stays
    usable. Ties go to the lowest address.
    """

    code = "W"
    name = "worst_fit"

    def choose(self, candidates: List[Candidate]) -> int:
        index, _ = max(candidates, key=lambda item: item[1].size)
        return index


STRATEGIES: Dict[str, Type[Allocator]] = {
    FirstFitAllocator.code: FirstFitAllocator,
    BestFitAllocator.code: BestFitAllocator,
    WorstFitAllocator.code: WorstFitAllocator,
}


def get_allocator(strategy: Union[str, Allocator]) -> Allocator:
    """Resolve a strategy code (F, B or W) or pass an allocator through."""
    if isinstance(strategy, Allocator):
        return strategy
    if not isinstance(strategy, str):
        raise InvalidStrategyError(strategy)
    factory = STRATEGIES.get(strategy.strip().upper())
    if factory is None:
        raise InvalidStrategyError(strategy)
    return factory()
