from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterator, List, Optional


@dataclass
class Request:
    op: str
    owner: Optional[str] = None
    size: int = 0

    def as_command(self, strategy: str) -> str:
        """Render the request as a shell command line."""
        if self.op == "RQ":
            return f"RQ {self.owner} {self.size} {strategy}"
        if self.op == "RL":
            return f"RL {self.owner}"
        return self.op


class WorkloadGenerator:
    """
    Generate request streams that emulate processes entering and leaving memory.

    The generator tracks which owners it has handed out so releases always name
    a process it previously requested. Whether that request actually succeeded
    depends on the partition, so replays may still see unknown-owner releases.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        *,
        min_size: int = 8,
        max_size: int = 256,
        release_probability: float = 0.35,
        compact_probability: float = 0.0,
    ) -> None:
        if min_size <= 0 or max_size < min_size:
            raise ValueError(f"Invalid size range [{min_size}, {max_size}]")
        self.random = random.Random(seed)
        self.min_size = min_size
        self.max_size = max_size
        self.release_probability = release_probability
        self.compact_probability = compact_probability
        self._live: List[str] = []
        self._counter = 0

    def next_request(self) -> Request:
        roll = self.random.random()
        if roll < self.release_probability:
            if self._live:
                owner = self._live.pop(self.random.randrange(len(self._live)))
                return Request(op="RL", owner=owner)
        elif roll < self.release_probability + self.compact_probability:
            return Request(op="C")
        self._counter += 1
        owner = f"P{self._counter}"
        self._live.append(owner)
        return Request(op="RQ", owner=owner, size=self._sample_size())

    def stream(self, steps: int) -> Iterator[Request]:
        for _ in range(steps):
            yield self.next_request()

    def _sample_size(self) -> int:
        # Small requests dominate, with an occasional large one.
        if self.random.random() < 0.8:
            upper = max(self.min_size, self.max_size // 4)
            return self.random.randint(self.min_size, upper)
        return self.random.randint(self.min_size, self.max_size)
