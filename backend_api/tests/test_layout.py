import unittest
from unittest import mock

from planner_api import layout
from planner_api.layout import (
    InvalidTimeError,
    LayoutCache,
    LayoutOptions,
    format_minutes,
    intervals_overlap,
    layout_slot,
    layout_week,
    parse_time_to_minutes,
    routines_in_slot,
)

NINE = 9 * 60


def routine(rid, start, end, day=1, title=None):
    return {"id": rid, "day_of_week": day, "start_time": start, "end_time": end, "title": title or f"R{rid}"}


def by_id(slot):
    return {p.routine_id: p for p in slot.positioned}


class TimeParsingTests(unittest.TestCase):
    def test_parses_hours_and_minutes(self):
        self.assertEqual(parse_time_to_minutes("09:30"), 570)
        self.assertEqual(parse_time_to_minutes("9:05"), 545)
        self.assertEqual(parse_time_to_minutes("00:00"), 0)
        self.assertEqual(parse_time_to_minutes("23:59"), 1439)

    def test_seconds_are_truncated(self):
        self.assertEqual(parse_time_to_minutes("07:15:59"), 435)

    def test_rejects_malformed_values(self):
        for bad in ("24:00", "9:5", "12:60", "noon", "", None, 930):
            with self.subTest(value=bad):
                with self.assertRaises(InvalidTimeError):
                    parse_time_to_minutes(bad)

    def test_invalid_time_is_a_value_error(self):
        self.assertTrue(issubclass(InvalidTimeError, ValueError))

    def test_format_minutes(self):
        self.assertEqual(format_minutes(545), "09:05")
        self.assertEqual(format_minutes(0), "00:00")


class OverlapTests(unittest.TestCase):
    def test_touching_intervals_do_not_overlap(self):
        self.assertFalse(intervals_overlap(540, 600, 600, 660))
        self.assertFalse(intervals_overlap(600, 660, 540, 600))

    def test_partial_and_contained_overlap(self):
        self.assertTrue(intervals_overlap(540, 601, 600, 660))
        self.assertTrue(intervals_overlap(540, 720, 600, 610))

    def test_routine_ending_at_slot_start_is_not_in_slot(self):
        items = [routine(1, "08:00", "09:00"), routine(2, "10:00", "11:00"), routine(3, "08:30", "09:15")]
        self.assertEqual([r["id"] for r in routines_in_slot(items, NINE, NINE + 60)], [3])

    def test_slot_members_are_ordered_by_start_then_input(self):
        items = [routine(1, "09:30", "10:00"), routine(2, "09:00", "10:00"), routine(3, "09:00", "09:45")]
        self.assertEqual([r["id"] for r in routines_in_slot(items, NINE, NINE + 60)], [2, 3, 1])


class SlotGeometryTests(unittest.TestCase):
    def test_single_routine_fills_the_slot(self):
        p = layout_slot([routine(1, "09:00", "10:00")], 1, NINE).positioned[0]
        self.assertEqual(p.height_px, 76)
        self.assertEqual(p.top_offset_px, 0)
        self.assertEqual(p.left_offset_px, 8)
        self.assertEqual(p.width_px, 144)
        self.assertEqual((p.overlap_count, p.position), (1, 0))
        self.assertFalse(p.is_hidden or p.should_show_more)

    def test_short_routine_gets_minimum_height_and_offset(self):
        p = layout_slot([routine(1, "09:30", "09:45")], 1, NINE).positioned[0]
        self.assertEqual(p.height_px, 32)
        self.assertEqual(p.top_offset_px, 38)

    def test_height_is_clipped_to_the_slot(self):
        p = layout_slot([routine(1, "08:30", "10:30")], 1, NINE).positioned[0]
        self.assertEqual(p.height_px, 76)
        self.assertEqual(p.top_offset_px, 0)

    def test_two_overlapping_routines_share_the_width(self):
        slot = layout_slot([routine(1, "09:00", "10:00"), routine(2, "09:30", "10:30")], 1, NINE)
        a, b = by_id(slot)[1], by_id(slot)[2]
        self.assertEqual((a.overlap_count, b.overlap_count), (2, 2))
        self.assertEqual((a.position, b.position), (0, 1))
        self.assertEqual((a.width_px, b.width_px), (68, 68))
        self.assertEqual((a.left_offset_px, b.left_offset_px), (8, 80))

    def test_three_overlapping_show_two_and_a_more_marker(self):
        items = [routine(i, "09:00", "10:00") for i in (1, 2, 3)]
        slot = layout_slot(items, 1, NINE)
        self.assertEqual(len(slot.positioned), 3)
        self.assertEqual([p.routine_id for p in slot.visible if not p.should_show_more], [1, 2])
        marker = slot.markers[0]
        self.assertEqual(marker.routine_id, 3)
        self.assertEqual(marker.more_count, 1)
        self.assertEqual(marker.more_target_id, 3)
        self.assertTrue(marker.is_last_visible)
        self.assertEqual(slot.hidden, [])
        self.assertEqual([p.width_px for p in slot.positioned], [44, 44, 44])
        self.assertEqual([p.left_offset_px for p in slot.positioned], [8, 56, 104])

    def test_routines_beyond_the_cap_are_hidden_behind_the_marker(self):
        items = [routine(i, "09:00", "10:00") for i in (1, 2, 3, 4, 5)]
        slot = layout_slot(items, 1, NINE)
        marker = slot.markers[0]
        self.assertEqual((marker.routine_id, marker.more_count), (3, 3))
        self.assertEqual([p.routine_id for p in slot.hidden], [4, 5])
        for p in slot.hidden:
            self.assertEqual(p.represented_by, 3)
        # hidden blocks stay inside the cell
        self.assertEqual({p.left_offset_px for p in slot.hidden}, {104})

    def test_no_routine_is_lost(self):
        items = [routine(i, "09:%02d" % (i * 5), "10:30") for i in range(1, 8)]
        slot = layout_slot(items, 1, NINE)
        self.assertEqual(sorted(by_id(slot)), list(range(1, 8)))
        blocks = by_id(slot)
        for p in slot.hidden:
            self.assertTrue(blocks[p.represented_by].should_show_more)
        self.assertEqual(len(slot.markers), 1)
        shown = [p for p in slot.visible if not p.should_show_more]
        self.assertEqual(len(shown) + slot.markers[0].more_count, len(items))

    def test_uneven_groups_still_get_a_single_marker(self):
        items = [
            routine(1, "09:00", "09:20"),
            routine(2, "09:00", "10:00"),
            routine(3, "09:10", "10:00"),
            routine(4, "09:40", "10:00"),
            routine(5, "09:45", "10:00"),
        ]
        slot = layout_slot(items, 1, NINE)
        self.assertEqual([p.routine_id for p in slot.markers], [3])
        self.assertEqual(slot.markers[0].more_count, 3)
        self.assertEqual([p.routine_id for p in slot.visible if not p.should_show_more], [1, 2])
        self.assertEqual([p.routine_id for p in slot.hidden], [4, 5])

    def test_hidden_routines_point_at_the_marker(self):
        items = [
            routine(1, "09:00", "09:05"),
            routine(2, "09:00", "10:00"),
            routine(3, "09:01", "10:00"),
            routine(4, "09:02", "10:00"),
            routine(5, "09:06", "10:00"),
        ]
        slot = layout_slot(items, 1, NINE)
        blocks = by_id(slot)
        self.assertEqual([p.routine_id for p in slot.markers], [3])
        self.assertEqual({p.routine_id: p.represented_by for p in slot.hidden}, {4: 3, 5: 3})
        for p in slot.hidden:
            self.assertTrue(blocks[p.represented_by].should_show_more)

    def test_overlap_groups_are_pairwise_and_symmetric(self):
        items = [routine(1, "09:00", "09:20"), routine(2, "09:15", "09:40"), routine(3, "09:30", "09:50")]
        slot = layout_slot(items, 1, NINE)
        p = by_id(slot)
        self.assertEqual((p[1].overlap_count, p[2].overlap_count, p[3].overlap_count), (2, 3, 2))
        self.assertEqual(p[1].width_px, 68)
        self.assertEqual(p[2].width_px, 44)
        self.assertEqual(p[3].position, 1)

        def members(rid):
            r = next(x for x in items if x["id"] == rid)
            s, e = parse_time_to_minutes(r["start_time"]), parse_time_to_minutes(r["end_time"])
            return {
                o["id"]
                for o in items
                if intervals_overlap(s, e, parse_time_to_minutes(o["start_time"]), parse_time_to_minutes(o["end_time"]))
            }

        for a in (1, 2, 3):
            for b in members(a):
                self.assertIn(a, members(b))

    def test_geometry_is_never_negative(self):
        items = [routine(i, "09:00", "09:10") for i in range(1, 12)]
        narrow = LayoutOptions(column_width_px=10)
        for p in layout_slot(items, 1, NINE, options=narrow).positioned:
            self.assertGreaterEqual(p.width_px, 0)
            self.assertGreaterEqual(p.height_px, 0)
            self.assertGreaterEqual(p.left_offset_px, 0)
            self.assertGreaterEqual(p.top_offset_px, 0)

    def test_other_days_are_ignored(self):
        items = [routine(1, "09:00", "10:00", day=1), routine(2, "09:00", "10:00", day=2)]
        slot = layout_slot(items, 2, NINE)
        self.assertEqual([p.routine_id for p in slot.positioned], [2])
        self.assertEqual(slot.positioned[0].overlap_count, 1)

    def test_layout_is_idempotent(self):
        items = [routine(1, "09:00", "10:00"), routine(2, "09:10", "09:50"), routine(3, "09:20", "11:00")]
        self.assertEqual(layout_slot(items, 1, NINE), layout_slot(items, 1, NINE))

    def test_orm_like_objects_are_accepted(self):
        class Row:
            def __init__(self, **kw):
                self.__dict__.update(kw)

        slot = layout_slot([Row(id=7, day_of_week=3, start_time="09:00", end_time="09:30")], 3, NINE)
        self.assertEqual(slot.positioned[0].height_px, 38)


class FailSoftTests(unittest.TestCase):
    def test_inverted_times_are_excluded_with_a_warning(self):
        items = [routine(1, "10:00", "09:00"), routine(2, "09:00", "10:00")]
        with self.assertLogs("planner_api.layout", level="WARNING") as logs:
            week = layout_week(items, start_hour=9, end_hour=10)
        self.assertEqual(week.excluded_ids, [1])
        self.assertIn("Excluding routine 1", logs.output[0])
        slot = week.days[1].slots[0]
        self.assertEqual([p.routine_id for p in slot.positioned], [2])
        self.assertEqual(slot.positioned[0].overlap_count, 1)

    def test_malformed_time_and_day_are_excluded(self):
        items = [routine(1, "25:00", "26:00"), routine(2, "09:00", "10:00", day=9), routine(3, "09:00", "10:00")]
        with self.assertLogs("planner_api.layout", level="WARNING"):
            week = layout_week(items, start_hour=9, end_hour=10)
        self.assertEqual(week.excluded_ids, [1, 2])

    def test_a_failing_routine_is_dropped_from_its_slot(self):
        real = layout._position_one

        def flaky(span, *args, **kwargs):
            if span.routine_id == 2:
                raise layout.LayoutError("boom")
            return real(span, *args, **kwargs)

        items = [routine(1, "09:00", "10:00"), routine(2, "09:00", "10:00"), routine(3, "09:30", "10:00")]
        with mock.patch.object(layout, "_position_one", side_effect=flaky):
            with self.assertLogs("planner_api.layout", level="ERROR"):
                slot = layout_slot(items, 1, NINE)
        self.assertEqual(slot.dropped_ids, (2,))
        self.assertEqual([p.routine_id for p in slot.positioned], [1, 3])


class LayoutCacheTests(unittest.TestCase):
    def test_repeated_layout_is_served_from_cache(self):
        cache = LayoutCache(maxsize=8)
        items = [routine(1, "09:00", "10:00"), routine(2, "09:30", "10:00")]
        first = cache.layout_slot(items, 1, NINE)
        second = cache.layout_slot([dict(r) for r in items], 1, NINE)
        self.assertIs(first, second)
        self.assertEqual((cache.hits, cache.misses), (1, 1))

    def test_changed_routine_invalidates(self):
        cache = LayoutCache(maxsize=8)
        cache.layout_slot([routine(1, "09:00", "10:00")], 1, NINE)
        changed = cache.layout_slot([routine(1, "09:00", "09:30")], 1, NINE)
        self.assertEqual(cache.misses, 2)
        self.assertEqual(changed.positioned[0].height_px, 38)

    def test_changed_title_invalidates(self):
        cache = LayoutCache(maxsize=8)
        cache.layout_slot([routine(1, "09:00", "10:00", title="Gym")], 1, NINE)
        cache.layout_slot([routine(1, "09:00", "10:00", title="Run")], 1, NINE)
        self.assertEqual(cache.misses, 2)

    def test_least_recently_used_entry_is_evicted(self):
        cache = LayoutCache(maxsize=2)
        items = [routine(1, "09:00", "12:00")]
        for hour in (9, 10, 11):
            cache.layout_slot(items, 1, hour * 60)
        self.assertEqual(len(cache), 2)
        cache.layout_slot(items, 1, 9 * 60)
        self.assertEqual(cache.misses, 4)

    def test_clear(self):
        cache = LayoutCache()
        cache.layout_slot([routine(1, "09:00", "10:00")], 1, NINE)
        cache.clear()
        self.assertEqual((len(cache), cache.hits, cache.misses), (0, 0, 0))

    def test_week_layout_uses_the_cache(self):
        cache = LayoutCache(maxsize=512)
        items = [routine(1, "09:00", "10:00")]
        layout_week(items, start_hour=8, end_hour=12, cache=cache)
        layout_week(items, start_hour=8, end_hour=12, cache=cache)
        self.assertEqual(cache.misses, 28)
        self.assertEqual(cache.hits, 28)


class WeekLayoutTests(unittest.TestCase):
    def test_grid_covers_every_day_and_hour(self):
        week = layout_week([], start_hour=6, end_hour=24)
        self.assertEqual(len(week.days), 7)
        self.assertEqual(week.days[0].name, "Sunday")
        self.assertEqual(len(week.days[3].slots), 18)
        self.assertEqual(week.days[3].slots[0].slot_start, 360)

    def test_multi_hour_routine_appears_in_each_slot(self):
        week = layout_week([routine(1, "09:30", "11:15")], start_hour=9, end_hour=12)
        heights = [s.positioned[0].height_px for s in week.days[1].slots]
        tops = [s.positioned[0].top_offset_px for s in week.days[1].slots]
        self.assertEqual(heights, [38, 76, 32])
        self.assertEqual(tops, [38, 0, 0])

    def test_invalid_hours(self):
        for start, end in ((10, 10), (12, 8), (-1, 5), (0, 25)):
            with self.subTest(start=start, end=end):
                with self.assertRaises(ValueError):
                    layout_week([], start_hour=start, end_hour=end)

    def test_navigation_map(self):
        week = layout_week([routine(1, "09:00", "10:00"), routine(2, "07:30", "08:00", day=0)])
        self.assertEqual(week.navigation.as_dict(), {"0:450": 2, "1:540": 1})


class NavigationTests(unittest.TestCase):
    def setUp(self):
        self.index = layout.NavigationIndex.build(
            [
                routine(1, "09:00", "10:00", day=1),
                routine(2, "11:00", "12:00", day=1),
                routine(3, "10:00", "10:30", day=2),
                routine(4, "12:00", "13:00", day=2),
                routine(5, "08:00", "09:00", day=6),
                routine(6, "09:00", "09:30", day=0),
                routine(7, "25:00", "26:00", day=4),
            ]
        )

    def test_up_and_down_stay_within_the_day(self):
        self.assertEqual(self.index.neighbor(1, "down"), 2)
        self.assertEqual(self.index.neighbor(2, "ArrowUp"), 1)
        self.assertIsNone(self.index.neighbor(1, "up"))
        self.assertIsNone(self.index.neighbor(2, "down"))

    def test_left_and_right_pick_the_closest_start(self):
        self.assertEqual(self.index.neighbor(1, "right"), 3)
        self.assertEqual(self.index.neighbor(2, "right"), 3)  # tie between 10:00 and 12:00
        self.assertEqual(self.index.neighbor(4, "left"), 2)

    def test_days_wrap_around(self):
        self.assertEqual(self.index.neighbor(6, "left"), 5)
        self.assertEqual(self.index.neighbor(5, "ArrowRight"), 6)

    def test_empty_neighbouring_day(self):
        self.assertIsNone(self.index.neighbor(3, "right"))

    def test_lookup(self):
        self.assertEqual(self.index.lookup(1, 540), 1)
        self.assertIsNone(self.index.lookup(1, 541))

    def test_errors(self):
        self.assertNotIn(7, self.index)
        with self.assertRaises(KeyError):
            self.index.neighbor(7, "up")
        with self.assertRaises(ValueError):
            self.index.neighbor(1, "pageup")


if __name__ == "__main__":
    unittest.main()
