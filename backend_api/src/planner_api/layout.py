"""Weekly-routine calendar layout.

Positions a user's routines inside the hourly slots of the weekly grid so that
overlapping routines share a slot side by side instead of drawing over each
other. Everything here is pure and synchronous: the functions take the routines
the API already loaded and return frozen geometry records. No I/O.

Routines may be ORM rows or plain mappings; only ``id``, ``day_of_week``,
``start_time`` and ``end_time`` are required. ``title``, ``description``,
``category`` and ``is_recurring`` are carried through when present.

A routine with an unparsable time, or with ``start >= end``, is left out of the
layout with a warning. A routine whose geometry cannot be computed is dropped
from its slot with an error log. Neither case raises to the caller.
"""
from __future__ import annotations

import logging
import re
import threading
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple

from . import config

logger = logging.getLogger(__name__)

MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 24 * MINUTES_PER_HOUR
DAYS_PER_WEEK = 7
DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$")

_DISPLAY_FIELDS = ("title", "description", "category", "is_recurring")


class InvalidTimeError(ValueError):
    """Raised for time-of-day values that are not 24-hour ``HH:MM``."""


class LayoutError(RuntimeError):
    """Raised when one routine's geometry cannot be computed."""


# =========================
# Time utilities
# =========================
def parse_time_to_minutes(value: Any) -> int:
    """Convert ``"HH:MM"`` (or ``"HH:MM:SS"``) to minutes since midnight.

    Seconds are accepted because SQL TIME columns round-trip with them, and
    are truncated.
    """
    if not isinstance(value, str):
        raise InvalidTimeError(f"time must be a string, got {type(value).__name__}")
    m = _TIME_RE.match(value.strip())
    if not m:
        raise InvalidTimeError(f"invalid time {value!r}; expected HH:MM (24-hour)")
    return int(m.group(1)) * MINUTES_PER_HOUR + int(m.group(2))


def format_minutes(minutes: int) -> str:
    """Inverse of parse_time_to_minutes for whole minutes within a day."""
    hours, mins = divmod(int(minutes), MINUTES_PER_HOUR)
    return f"{hours:02d}:{mins:02d}"


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Strict half-open overlap: touching intervals do not overlap."""
    return a_start < b_end and a_end > b_start


def _attr(routine: Any, name: str, default: Any = None) -> Any:
    if isinstance(routine, dict):
        return routine.get(name, default)
    return getattr(routine, name, default)


@dataclass(frozen=True)
class _Span:
    """A routine that passed time validation, in minutes."""
    routine: Any = field(compare=False, hash=False, repr=False)
    routine_id: Hashable
    day_index: int
    start: int
    end: int
    fingerprint: Tuple[Any, ...]


def _normalize(routine: Any) -> Optional[_Span]:
    routine_id = _attr(routine, "id")
    try:
        day = _attr(routine, "day_of_week")
        if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day < DAYS_PER_WEEK:
            raise InvalidTimeError(f"day_of_week must be 0-6, got {day!r}")
        start = parse_time_to_minutes(_attr(routine, "start_time"))
        end = parse_time_to_minutes(_attr(routine, "end_time"))
        if start >= end:
            raise InvalidTimeError(
                f"start_time {_attr(routine, 'start_time')!r} is not before end_time {_attr(routine, 'end_time')!r}"
            )
    except InvalidTimeError as exc:
        logger.warning("Excluding routine %s from layout: %s", routine_id, exc)
        return None
    display = tuple(_attr(routine, name) for name in _DISPLAY_FIELDS)
    return _Span(
        routine=routine,
        routine_id=routine_id,
        day_index=day,
        start=start,
        end=end,
        fingerprint=(routine_id, day, start, end) + display,
    )


def _normalize_all(routines: Iterable[Any]) -> Tuple[List[_Span], List[Hashable]]:
    spans: List[_Span] = []
    excluded: List[Hashable] = []
    for routine in routines:
        span = _normalize(routine)
        if span is None:
            excluded.append(_attr(routine, "id"))
        else:
            spans.append(span)
    return spans, excluded


# =========================
# Overlap detection
# =========================
def _spans_in_slot(spans: Sequence[_Span], slot_start: int, slot_end: int) -> List[_Span]:
    # sorted() is stable: equal start times keep their input order
    hits = [s for s in spans if intervals_overlap(s.start, s.end, slot_start, slot_end)]
    return sorted(hits, key=lambda s: s.start)


def routines_in_slot(routines: Iterable[Any], slot_start: int, slot_end: int) -> List[Any]:
    """Return the routines whose interval intersects ``[slot_start, slot_end)``.

    Invalid routines are skipped (and logged). The result is ordered by start time.
    """
    spans, _ = _normalize_all(routines)
    return [s.routine for s in _spans_in_slot(spans, slot_start, slot_end)]


# =========================
# Layout allocation
# =========================
@dataclass(frozen=True)
class LayoutOptions:
    """Grid geometry in pixels; hashable so it can be part of a cache key."""
    row_height_px: float = config.ROW_HEIGHT_PX
    min_block_height_px: float = config.MIN_BLOCK_HEIGHT_PX
    max_visible_routines: int = config.MAX_VISIBLE_ROUTINES
    cell_padding_px: float = config.CELL_PADDING_PX
    column_gap_px: float = config.COLUMN_GAP_PX
    min_block_width_px: float = config.MIN_BLOCK_WIDTH_PX
    column_width_px: float = config.DEFAULT_COLUMN_WIDTH_PX


DEFAULT_OPTIONS = LayoutOptions()


@dataclass(frozen=True)
class PositionedRoutine:
    """Geometry of one routine inside one hourly slot."""
    routine: Any = field(compare=False, hash=False, repr=False)
    routine_id: Hashable
    day_index: int
    slot_start: int
    height_px: float
    top_offset_px: float
    left_offset_px: float
    width_px: float
    overlap_count: int
    position: int
    is_hidden: bool = False
    should_show_more: bool = False
    more_count: int = 0
    more_target_id: Optional[Hashable] = None
    represented_by: Optional[Hashable] = None

    @property
    def is_last_visible(self) -> bool:
        return self.should_show_more


@dataclass(frozen=True)
class SlotLayout:
    day_index: int
    slot_start: int
    slot_end: int
    positioned: Tuple[PositionedRoutine, ...] = ()
    dropped_ids: Tuple[Hashable, ...] = ()

    @property
    def visible(self) -> List[PositionedRoutine]:
        return [p for p in self.positioned if not p.is_hidden]

    @property
    def hidden(self) -> List[PositionedRoutine]:
        return [p for p in self.positioned if p.is_hidden]

    @property
    def markers(self) -> List[PositionedRoutine]:
        return [p for p in self.positioned if p.should_show_more]


def _round_px(value: float) -> float:
    return round(float(value), 2)


def _position_one(
    span: _Span,
    slot_spans: Sequence[_Span],
    slot_start: int,
    slot_end: int,
    opts: LayoutOptions,
) -> PositionedRoutine:
    visible_start = max(span.start, slot_start)
    visible_end = min(span.end, slot_end)
    visible_minutes = max(visible_end - visible_start, 0)

    height = max(visible_minutes / MINUTES_PER_HOUR * opts.row_height_px, opts.min_block_height_px)
    top = (visible_start - slot_start) / MINUTES_PER_HOUR * opts.row_height_px

    # Overlap group is recomputed against this routine's own visible window
    # (pairwise), not clustered per slot.
    group = [o for o in slot_spans if intervals_overlap(visible_start, visible_end, o.start, o.end)]
    position = next((i for i, o in enumerate(group) if o is span), None)
    if position is None:
        raise LayoutError(f"routine {span.routine_id!r} is missing from its own overlap group")
    overlap_count = len(group)

    max_visible = max(int(opts.max_visible_routines), 2)
    effective = min(overlap_count, max_visible)
    available = max(opts.column_width_px - 2 * opts.cell_padding_px, 0.0)
    if effective > 1:
        share = available / effective
        width = share - opts.column_gap_px
    else:
        share = available
        width = available
    width = max(width, opts.min_block_width_px)
    left = opts.cell_padding_px + min(position, effective - 1) * share

    if height < 0 or width < 0:
        raise LayoutError(f"negative geometry for routine {span.routine_id!r}")

    return PositionedRoutine(
        routine=span.routine,
        routine_id=span.routine_id,
        day_index=span.day_index,
        slot_start=slot_start,
        height_px=_round_px(height),
        top_offset_px=_round_px(top),
        left_offset_px=_round_px(left),
        width_px=_round_px(width),
        overlap_count=overlap_count,
        position=position,
    )


def _collapse(positioned: List[PositionedRoutine], opts: LayoutOptions) -> List[PositionedRoutine]:
    """Fold everything past the column cap into one "+N more" marker per slot.

    The marker is the first routine (in slot order) whose own group puts it at
    the cap column. Every later routine at or past that column is hidden behind
    it, so shown blocks plus ``more_count`` always equals the slot size.
    """
    max_visible = max(int(opts.max_visible_routines), 2)
    marker_index = max_visible - 1
    collapsed = [p for p in positioned if p.overlap_count >= max_visible and p.position >= marker_index]
    if not collapsed:
        return positioned

    marker, hidden = collapsed[0], collapsed[1:]
    hidden_keys = {id(p) for p in hidden}
    result = []
    for p in positioned:
        if p is marker:
            p = replace(p, should_show_more=True, more_count=len(collapsed), more_target_id=p.routine_id)
        elif id(p) in hidden_keys:
            p = replace(p, is_hidden=True, represented_by=marker.routine_id)
        result.append(p)
    return result


def _layout_spans(
    day_spans: Sequence[_Span],
    day_index: int,
    slot_start: int,
    slot_end: int,
    opts: LayoutOptions,
) -> SlotLayout:
    slot_spans = _spans_in_slot(day_spans, slot_start, slot_end)
    positioned: List[PositionedRoutine] = []
    dropped: List[Hashable] = []
    for span in slot_spans:
        try:
            positioned.append(_position_one(span, slot_spans, slot_start, slot_end, opts))
        except Exception:
            logger.exception(
                "Dropping routine %s from slot %s %s", span.routine_id, DAY_NAMES[day_index], format_minutes(slot_start)
            )
            dropped.append(span.routine_id)
    return SlotLayout(
        day_index=day_index,
        slot_start=slot_start,
        slot_end=slot_end,
        positioned=tuple(_collapse(positioned, opts)),
        dropped_ids=tuple(dropped),
    )


def layout_slot(
    routines: Iterable[Any],
    day_index: int,
    slot_start: int,
    slot_end: Optional[int] = None,
    options: Optional[LayoutOptions] = None,
) -> SlotLayout:
    """Position the routines of ``day_index`` that intersect one slot.

    ``slot_start``/``slot_end`` are minutes since midnight; the slot defaults to
    one hour. Routines of other days are ignored.
    """
    if slot_end is None:
        slot_end = slot_start + MINUTES_PER_HOUR
    spans, _ = _normalize_all(routines)
    day_spans = [s for s in spans if s.day_index == day_index]
    return _layout_spans(day_spans, day_index, slot_start, slot_end, options or DEFAULT_OPTIONS)


# =========================
# Memoization
# =========================
class LayoutCache:
    """LRU memo of slot layouts keyed on routine content and slot boundaries."""

    def __init__(self, maxsize: int = config.LAYOUT_CACHE_SIZE) -> None:
        self.maxsize = max(int(maxsize), 1)
        self.hits = 0
        self.misses = 0
        self._entries: "OrderedDict[Tuple[Any, ...], SlotLayout]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def get_or_compute(self, key: Tuple[Any, ...], compute: Callable[[], SlotLayout]) -> SlotLayout:
        with self._lock:
            cached = self._entries.get(key)
            if cached is not None:
                self._entries.move_to_end(key)
                self.hits += 1
                return cached
            self.misses += 1
        result = compute()
        with self._lock:
            self._entries[key] = result
            self._entries.move_to_end(key)
            while len(self._entries) > self.maxsize:
                self._entries.popitem(last=False)
        return result

    def layout_slot(
        self,
        routines: Iterable[Any],
        day_index: int,
        slot_start: int,
        slot_end: Optional[int] = None,
        options: Optional[LayoutOptions] = None,
    ) -> SlotLayout:
        """Memoized layout_slot."""
        if slot_end is None:
            slot_end = slot_start + MINUTES_PER_HOUR
        opts = options or DEFAULT_OPTIONS
        spans, _ = _normalize_all(routines)
        day_spans = [s for s in spans if s.day_index == day_index]
        return self._slot_for_spans(day_spans, day_index, slot_start, slot_end, opts)

    def _slot_for_spans(
        self, day_spans: Sequence[_Span], day_index: int, slot_start: int, slot_end: int, opts: LayoutOptions
    ) -> SlotLayout:
        key = (tuple(s.fingerprint for s in day_spans), day_index, slot_start, slot_end, opts)
        return self.get_or_compute(key, lambda: _layout_spans(day_spans, day_index, slot_start, slot_end, opts))


default_cache = LayoutCache()


# =========================
# Keyboard navigation
# =========================
class NavigationIndex:
    """Arrow-key neighbours between routine blocks.

    Built from the same routines as the layout, so no rendered tree is needed.
    Up/down move within a day by start time; left/right move to the adjacent
    day (wrapping Saturday <-> Sunday) and pick the closest start time.
    """

    _KEYS = {
        "up": "up", "arrowup": "up",
        "down": "down", "arrowdown": "down",
        "left": "left", "arrowleft": "left",
        "right": "right", "arrowright": "right",
    }

    def __init__(self, spans: Iterable[_Span] = ()) -> None:
        self._by_slot: Dict[Tuple[int, int], Hashable] = {}
        self._by_day: Dict[int, List[Tuple[int, Hashable]]] = {d: [] for d in range(DAYS_PER_WEEK)}
        self._where: Dict[Hashable, Tuple[int, int]] = {}
        for span in spans:
            self._by_slot.setdefault((span.day_index, span.start), span.routine_id)
            self._by_day[span.day_index].append((span.start, span.routine_id))
            self._where.setdefault(span.routine_id, (span.day_index, span.start))
        for entries in self._by_day.values():
            entries.sort(key=lambda e: e[0])

    @classmethod
    def build(cls, routines: Iterable[Any]) -> "NavigationIndex":
        spans, _ = _normalize_all(routines)
        return cls(spans)

    def __contains__(self, routine_id: Hashable) -> bool:
        return routine_id in self._where

    def lookup(self, day_index: int, start_minutes: int) -> Optional[Hashable]:
        return self._by_slot.get((day_index, start_minutes))

    def as_dict(self) -> Dict[str, Hashable]:
        """``"<day>:<start_minutes>" -> routine_id`` for JSON responses."""
        return {f"{day}:{start}": rid for (day, start), rid in sorted(self._by_slot.items(), key=lambda kv: kv[0])}

    def neighbor(self, routine_id: Hashable, key: str) -> Optional[Hashable]:
        """Routine to focus after pressing ``key`` on ``routine_id``, if any.

        Raises KeyError for an unindexed routine and ValueError for an unknown key.
        """
        direction = self._KEYS.get(str(key).strip().lower())
        if direction is None:
            raise ValueError(f"unknown navigation key {key!r}")
        day, start = self._where[routine_id]

        if direction in ("up", "down"):
            entries = self._by_day[day]
            if direction == "up":
                earlier = [rid for s, rid in entries if s < start]
                return earlier[-1] if earlier else None
            return next((rid for s, rid in entries if s > start), None)

        step = -1 if direction == "left" else 1
        target = self._by_day[(day + step) % DAYS_PER_WEEK]
        if not target:
            return None
        best_start, best_id = target[0]
        for s, rid in target[1:]:
            if abs(s - start) < abs(best_start - start):
                best_start, best_id = s, rid
        return best_id


# =========================
# Whole week
# =========================
@dataclass(frozen=True)
class DayLayout:
    day_index: int
    name: str
    slots: Tuple[SlotLayout, ...]


@dataclass
class WeekLayout:
    start_hour: int
    end_hour: int
    days: List[DayLayout]
    navigation: NavigationIndex
    excluded_ids: List[Hashable]


def layout_week(
    routines: Iterable[Any],
    start_hour: int = config.GRID_START_HOUR,
    end_hour: int = config.GRID_END_HOUR,
    options: Optional[LayoutOptions] = None,
    cache: Optional[LayoutCache] = None,
) -> WeekLayout:
    """Lay out every hourly slot in ``[start_hour, end_hour)`` for all seven days."""
    if not 0 <= start_hour < end_hour <= 24:
        raise ValueError(f"invalid grid hours {start_hour}-{end_hour}")
    opts = options or DEFAULT_OPTIONS
    spans, excluded = _normalize_all(routines)

    days: List[DayLayout] = []
    for day_index in range(DAYS_PER_WEEK):
        day_spans = [s for s in spans if s.day_index == day_index]
        slots = []
        for hour in range(start_hour, end_hour):
            slot_start = hour * MINUTES_PER_HOUR
            slot_end = slot_start + MINUTES_PER_HOUR
            if cache is not None:
                slots.append(cache._slot_for_spans(day_spans, day_index, slot_start, slot_end, opts))
            else:
                slots.append(_layout_spans(day_spans, day_index, slot_start, slot_end, opts))
        days.append(DayLayout(day_index=day_index, name=DAY_NAMES[day_index], slots=tuple(slots)))

    return WeekLayout(
        start_hour=start_hour,
        end_hour=end_hour,
        days=days,
        navigation=NavigationIndex(spans),
        excluded_ids=excluded,
    )
