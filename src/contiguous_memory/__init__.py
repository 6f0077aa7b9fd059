"""
Contiguous memory allocation simulator in the style of early OS memory managers.

Expose the partition, placement strategies and error types.
"""

from .allocators import (
    Allocator,
    BestFitAllocator,
    FirstFitAllocator,
    WorstFitAllocator,
    get_allocator,
)
from .errors import (
    AllocationError,
    DuplicateOwnerError,
    InvalidSizeError,
    InvalidStrategyError,
    OutOfSpaceError,
    UnknownOwnerError,
)
from .partition import Partition, PartitionReport, Segment
from .shell import CommandShell

__all__ = [
    "Allocator",
    "FirstFitAllocator",
    "BestFitAllocator",
    "WorstFitAllocator",
    "get_allocator",
    "AllocationError",
    "DuplicateOwnerError",
    "InvalidSizeError",
    "InvalidStrategyError",
    "OutOfSpaceError",
    "UnknownOwnerError",
    "Partition",
    "PartitionReport",
    "Segment",
    "CommandShell",
]
