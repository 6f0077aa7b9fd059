from __future__ import annotations


class AllocationError(Exception):
    """Base class for recoverable partition errors."""


class InvalidSizeError(AllocationError, ValueError):
    def __init__(self, size: object) -> None:
        super().__init__(f"Size must be a positive integer, got {size!r}")
        self.size = size


class OutOfSpaceError(AllocationError):
    """No hole is large enough for the request."""

    def __init__(self, owner: str, size: int) -> None:
        super().__init__(f"Unable to allocate {size} bytes for process {owner}")
        self.owner = owner
        self.size = size


class DuplicateOwnerError(AllocationError):
    def __init__(self, owner: str) -> None:
        super().__init__(f"Process {owner} already owns a segment")
        self.owner = owner


class UnknownOwnerError(AllocationError):
    def __init__(self, owner: str) -> None:
        super().__init__(f"Process {owner} does not own a segment")
        self.owner = owner


class InvalidStrategyError(AllocationError):
    def __init__(self, code: object) -> None:
        super().__init__(f"Unknown placement strategy {code!r}")
        self.code = code
