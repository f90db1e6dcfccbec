"""
Interval-set operations on minute ranges.

All functions are pure and operate on half-open ``(start, end)`` minute pairs.
Results are sorted, disjoint and free of empty ranges.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Sequence, Tuple

from shared_types.availability import TimeWindow

Range = Tuple[int, int]


def check_overlap(start1: int, end1: int, start2: int, end2: int) -> bool:
    """Check if two half-open ranges overlap (touching ranges do not)."""
    return start1 < end2 and start2 < end1


def union_ranges(ranges: Iterable[Range]) -> List[Range]:
    """
    Merge overlapping or adjacent ranges into maximal disjoint ranges.

    >>> union_ranges([(540, 600), (600, 660), (700, 720), (710, 730)])
    [(540, 660), (700, 730)]
    """
    merged: List[Range] = []
    for start, end in sorted(r for r in ranges if r[1] > r[0]):
        if merged and start <= merged[-1][1]:
            last_start, last_end = merged[-1]
            merged[-1] = (last_start, max(last_end, end))
        else:
            merged.append((start, end))
    return merged


def subtract_range(ranges: Sequence[Range], removed: Range) -> List[Range]:
    """
    Remove one range from a set of ranges.

    A range that strictly contains ``removed`` is split into up to two
    remainders; zero-length remainders are dropped.
    """
    cut_start, cut_end = removed
    if cut_end <= cut_start:
        return list(ranges)

    result: List[Range] = []
    for start, end in ranges:
        if not check_overlap(start, end, cut_start, cut_end):
            result.append((start, end))
            continue
        if start < cut_start:
            result.append((start, cut_start))
        if cut_end < end:
            result.append((cut_end, end))
    return result


def subtract_ranges(ranges: Sequence[Range], removed: Iterable[Range]) -> List[Range]:
    """Remove every range in ``removed`` from ``ranges``."""
    result = list(ranges)
    for cut in removed:
        result = subtract_range(result, cut)
    return result


def total_minutes(ranges: Iterable[Range]) -> int:
    """Total covered minutes of a disjoint range set."""
    return sum(end - start for start, end in ranges)


def group_by_type(windows: Iterable[TimeWindow]) -> Dict[str, List[Range]]:
    """Group windows into per-consultation-type range lists."""
    grouped: Dict[str, List[Range]] = defaultdict(list)
    for window in windows:
        grouped[window.consultation_type].append((window.start_minute, window.end_minute))
    return grouped


def to_windows(grouped: Dict[str, List[Range]]) -> List[TimeWindow]:
    """Flatten per-type ranges into sorted windows, dropping empty ones."""
    windows = [
        TimeWindow(start, end, consultation_type)
        for consultation_type, ranges in grouped.items()
        for start, end in ranges
        if end > start
    ]
    return sorted(windows, key=lambda w: (w.start_minute, w.consultation_type))


def normalize_windows(windows: Iterable[TimeWindow]) -> List[TimeWindow]:
    """Union windows per consultation type into maximal disjoint windows."""
    grouped = group_by_type(windows)
    return to_windows({t: union_ranges(r) for t, r in grouped.items()})
