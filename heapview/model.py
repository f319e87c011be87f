"""Core data types describing recorded heap allocation traces."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class CostType(Enum):
    """The kinds of cost tracked per allocation site."""

    ALLOCATIONS = "allocations"
    TEMPORARY = "temporary"
    LEAKED = "leaked"
    PEAK = "peak"

    @classmethod
    def from_name(cls, name: str) -> "CostType":
        """Look up a cost type by its command line name."""
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"unknown cost type: {name!r}") from None


@dataclass(frozen=True, order=True)
class Symbol:
    """A function within a module, both given as string indices."""

    function_id: int = 0
    module_id: int = 0


@dataclass(frozen=True, order=True)
class FileLine:
    """A source location: file string index and line number."""

    file_id: int = 0
    line: int = 0


@dataclass(frozen=True, order=True)
class Frame:
    """A single (possibly inlined) frame of a backtrace."""

    function_index: int = 0
    file_index: int = 0
    line: int = 0


@dataclass(frozen=True)
class InstructionPointer:
    """An instruction pointer with its resolved frame and inlined frames."""

    instruction_pointer: int = 0
    module_index: int = 0
    frame: Frame = field(default_factory=Frame)
    inlined: tuple[Frame, ...] = ()

    def symbol(self) -> Symbol:
        """The symbol of the outermost frame at this address."""
        return Symbol(self.frame.function_index, self.module_index)

    def _key_without_address(self) -> tuple:
        return (self.frame, self.module_index, tuple(self.inlined))

    def compare_without_address(self, other: "InstructionPointer") -> bool:
        """True if this sorts before ``other`` when the address is ignored."""
        return self._key_without_address() < other._key_without_address()

    def equal_without_address(self, other: "InstructionPointer") -> bool:
        """True if both describe the same location apart from the address."""
        return self._key_without_address() == other._key_without_address()


@dataclass(eq=False)
class AllocationData:
    """Accumulated allocation costs."""

    allocations: int = 0
    temporary: int = 0
    leaked: int = 0
    peak: int = 0

    def _costs(self) -> tuple[int, int, int, int]:
        return (self.allocations, self.temporary, self.leaked, self.peak)

    def cost(self, cost_type: CostType) -> int:
        """The value of the given cost type."""
        return getattr(self, cost_type.value)

    def __add__(self, other: "AllocationData") -> "AllocationData":
        if not isinstance(other, AllocationData):
            return NotImplemented
        return AllocationData(
            *(mine + theirs for mine, theirs in zip(self._costs(), other._costs()))
        )

    def __sub__(self, other: "AllocationData") -> "AllocationData":
        if not isinstance(other, AllocationData):
            return NotImplemented
        return AllocationData(
            *(mine - theirs for mine, theirs in zip(self._costs(), other._costs()))
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AllocationData):
            return NotImplemented
        return self._costs() == other._costs()

    __hash__ = None  # type: ignore[assignment]


@dataclass(eq=False)
class Allocation(AllocationData):
    """Allocation costs attributed to one backtrace."""

    trace_index: int = 0

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Allocation):
            return self._costs() == other._costs() and self.trace_index == other.trace_index
        return super().__eq__(other)

    __hash__ = None  # type: ignore[assignment]


@dataclass(frozen=True)
class TraceNode:
    """A node of the backtrace tree: an address and the index of its caller."""

    ip_index: int = 0
    parent_index: int = 0


@dataclass(frozen=True)
class AllocationInfo:
    """Size of an allocation and the index of the allocation it belongs to."""

    size: int = 0
    allocation_index: int = 0


@dataclass
class Suppression:
    """A leak suppression pattern and how much it matched."""

    pattern: str
    matches: int = 0
    leaked: int = 0


def _lookup(items: list, index: int, kind: str, default):
    if index == 0:
        return default
    if index < 0 or index > len(items):
        raise IndexError(f"{kind} index {index} out of range")
    return items[index - 1]


@dataclass
class TraceData:
    """All data read from a trace file.

    Strings, trace nodes and instruction pointers are addressed by 1-based
    indices; index 0 means "unknown" and resolves to an empty value.
    """

    strings: list[str] = field(default_factory=list)
    traces: list[TraceNode] = field(default_factory=list)
    instruction_pointers: list[InstructionPointer] = field(default_factory=list)
    allocations: list[Allocation] = field(default_factory=list)
    allocation_infos: list[AllocationInfo] = field(default_factory=list)
    stop_indices: set[int] = field(default_factory=set)
    suppressions: list[Suppression] = field(default_factory=list)
    total_cost: AllocationData = field(default_factory=AllocationData)
    total_time: int = 0
    peak_time: int = 0
    peak_rss: int = 0
    page_size: int = 0
    pages: int = 0
    total_leaked_suppressed: int = 0
    from_attached: bool = False
    debuggee: str = ""

    def find_trace(self, trace_index: int) -> TraceNode:
        """The trace node for ``trace_index``; index 0 gives an empty node."""
        return _lookup(self.traces, trace_index, "trace", TraceNode())

    def find_ip(self, ip_index: int) -> InstructionPointer:
        """The instruction pointer for ``ip_index``; index 0 gives an empty one."""
        return _lookup(self.instruction_pointers, ip_index, "instruction pointer", InstructionPointer())

    def stringify(self, string_index: int) -> str:
        """The string for ``string_index``; index 0 gives an empty string."""
        return _lookup(self.strings, string_index, "string", "")

    def is_stop_index(self, function_index: int) -> bool:
        """True if backtraces should not be followed past this function."""
        return function_index in self.stop_indices