"""Formatting helpers for sizes, times, costs and symbols."""

from __future__ import annotations

from enum import Enum
from typing import Sequence

from heapview.model import AllocationData, FileLine, Symbol

_BYTE_UNITS = ("B", "kB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB")
_COST_LABELS = (
    ("Peak", "peak"),
    ("Leaked", "leaked"),
    ("Allocations", "allocations"),
    ("Temporary Allocations", "temporary"),
)


class FormatType(Enum):
    """How verbosely a location is rendered."""

    LONG = "long"
    SHORT = "short"


def _string(strings: Sequence[str], index: int) -> str:
    """Resolve a 1-based string index; 0 means unknown."""
    if index == 0:
        return ""
    if index < 0 or index > len(strings):
        raise IndexError(f"string index {index} out of range")
    return strings[index - 1]


def _escape(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def basename(path: str) -> str:
    """The part of ``path`` after the last slash."""
    return path[path.rfind("/") + 1 :]


def format_string(text: str) -> str:
    """``text``, or ``??`` when it is empty."""
    return text if text else "??"


def format_time(ms: int) -> str:
    """Render a duration in milliseconds, e.g. ``1h2min03s`` or ``04.500s``."""
    ms = int(ms)
    negative = ms < 0
    ms = abs(ms)
    total_seconds, ms = divmod(ms, 1000)
    days = total_seconds // 86400
    hours = (total_seconds // 3600) % 24
    minutes = (total_seconds // 60) % 60
    seconds = total_seconds % 60

    ret = "".join(
        f"{value}{unit}" for value, unit in ((days, "d"), (hours, "h"), (minutes, "min")) if value > 0
    )
    show_ms = not ret
    ret += f"{seconds:02d}"
    if show_ms:
        ret += f".{ms:03d}"
    ret += "s"
    return "-" + ret if negative else ret


def format_bytes(num_bytes: int) -> str:
    """Render a byte count with metric units and no spaces, e.g. ``1.5kB``."""
    size = float(num_bytes)
    power = 0
    while abs(size) >= 1000 and power < len(_BYTE_UNITS) - 1:
        size /= 1000
        power += 1
    text = str(int(num_bytes)) if power == 0 else f"{size:.1f}"
    return f"{text}{_BYTE_UNITS[power]}"


def format_cost_relative(self_cost: int, total_cost: int, add_percent_sign: bool = False) -> str:
    """``self_cost`` as a percentage of ``total_cost``, empty when the total is zero."""
    if not total_cost:
        return ""
    ret = f"{self_cost * 100.0 / total_cost:.3g}"
    if add_percent_sign:
        ret += "%"
    return ret


def symbol_to_string(symbol: Symbol, strings: Sequence[str], format_type: FormatType) -> str:
    """Render a symbol as HTML (long) or as ``function in binary`` (short)."""
    function = _string(strings, symbol.function_id)
    binary_path = _string(strings, symbol.module_id)
    binary_name = basename(binary_path)
    if format_type is FormatType.LONG:
        return (
            f"symbol: <tt>{_escape(function)}</tt><br/>"
            f"binary: <tt>{_escape(binary_name)} ({_escape(binary_path)})</tt>"
        )
    return f"{function} in {binary_name}"


def file_line_to_string(location: FileLine, strings: Sequence[str], format_type: FormatType) -> str:
    """Render ``file:line``; the short form uses only the file's basename."""
    file = _string(strings, location.file_id)
    if format_type is FormatType.SHORT:
        file = basename(file)
    return f"{file}:{location.line}" if file else "??"


def _single_cost(label: str, cost: int, total: int) -> str:
    return (
        f"{label}: {cost}<br/>&nbsp;&nbsp;"
        f"{format_cost_relative(cost, total)}% out of {total} total"
    )


def _self_inclusive_costs(
    self_costs: AllocationData, inclusive_costs: AllocationData, total_costs: AllocationData
) -> str:
    parts = []
    for label, member in _COST_LABELS:
        total = getattr(total_costs, member)
        if not total:
            continue
        parts.append(
            "<hr/>"
            + _single_cost(f"{label} (self)", getattr(self_costs, member), total)
            + "<br/>"
            + _single_cost(f"{label} (inclusive)", getattr(inclusive_costs, member), total)
        )
    return "".join(parts)


def format_tooltip(
    symbol: Symbol, costs: AllocationData, strings: Sequence[str], total_costs: AllocationData
) -> str:
    """HTML tooltip for a symbol with a single set of costs."""
    tooltip = symbol_to_string(symbol, strings, FormatType.LONG)
    for label, member in _COST_LABELS:
        total = getattr(total_costs, member)
        if total:
            tooltip += "<hr/>" + _single_cost(label, getattr(costs, member), total)
    return f"<qt>{tooltip}</qt>"


def format_symbol_tooltip(
    symbol: Symbol,
    self_costs: AllocationData,
    inclusive_costs: AllocationData,
    strings: Sequence[str],
    total_costs: AllocationData,
) -> str:
    """HTML tooltip for a symbol with self and inclusive costs."""
    tooltip = symbol_to_string(symbol, strings, FormatType.LONG)
    tooltip += _self_inclusive_costs(self_costs, inclusive_costs, total_costs)
    return f"<qt>{tooltip}</qt>"


def format_location_tooltip(
    location: FileLine,
    self_costs: AllocationData,
    inclusive_costs: AllocationData,
    strings: Sequence[str],
    total_costs: AllocationData,
) -> str:
    """HTML tooltip for a source location with self and inclusive costs."""
    tooltip = _escape(file_line_to_string(location, strings, FormatType.LONG))
    tooltip += _self_inclusive_costs(self_costs, inclusive_costs, total_costs)
    return f"<qt>{tooltip}</qt>"


def unresolved_function_name() -> str:
    """Placeholder shown for functions without symbol information."""
    return "<unresolved function>"