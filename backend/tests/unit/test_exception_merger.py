"""
Unit tests for applying one-off exceptions to weekly windows.
"""

from datetime import date, time

from models import AvailabilityException
from services.exception_merger import ExceptionMerger
from shared_types.availability import TimeWindow

DAY = date(2026, 3, 2)
OTHER_DAY = date(2026, 3, 3)


def make_exception(kind, start=None, end=None, consultation_type=None, day=DAY):
    return AvailabilityException(
        doctor_id=1,
        date=day,
        kind=kind,
        start_time=start,
        end_time=end,
        consultation_type=consultation_type,
    )


class TestBlocks:
    def test_partial_block_splits_window(self):
        windows = {DAY: [TimeWindow(540, 720, "video")]}
        block = make_exception("blocked", time(10), time(10, 30))

        result = ExceptionMerger.apply(windows, [block])

        assert result[DAY] == [TimeWindow(540, 600, "video"), TimeWindow(630, 720, "video")]

    def test_all_day_block_empties_every_type(self):
        windows = {DAY: [TimeWindow(540, 720, "video"), TimeWindow(780, 900, "in_person")]}

        result = ExceptionMerger.apply(windows, [make_exception("blocked")])

        assert result[DAY] == []

    def test_typed_block_only_affects_its_type(self):
        windows = {DAY: [TimeWindow(540, 720, "video"), TimeWindow(540, 720, "in_person")]}
        block = make_exception("blocked", time(9), time(12), "video")

        result = ExceptionMerger.apply(windows, [block])

        assert result[DAY] == [TimeWindow(540, 720, "in_person")]

    def test_other_dates_are_untouched(self):
        windows = {DAY: [TimeWindow(540, 720, "video")], OTHER_DAY: [TimeWindow(540, 720, "video")]}

        result = ExceptionMerger.apply(windows, [make_exception("blocked")])

        assert result[DAY] == []
        assert result[OTHER_DAY] == [TimeWindow(540, 720, "video")]


class TestAdditions:
    def test_addition_on_a_day_off(self):
        windows = {DAY: []}
        addition = make_exception("added", time(14), time(16), "in_person")

        result = ExceptionMerger.apply(windows, [addition])

        assert result[DAY] == [TimeWindow(840, 960, "in_person")]

    def test_addition_is_unioned_with_existing_window(self):
        windows = {DAY: [TimeWindow(540, 720, "video")]}
        addition = make_exception("added", time(11), time(13), "video")

        result = ExceptionMerger.apply(windows, [addition])

        assert result[DAY] == [TimeWindow(540, 780, "video")]

    def test_blocks_apply_before_additions(self):
        """An addition re-opens time removed by an all-day block on the same date."""
        windows = {DAY: [TimeWindow(540, 720, "video")]}
        exceptions = [
            make_exception("added", time(15), time(16), "video"),
            make_exception("blocked"),
        ]

        result = ExceptionMerger.apply(windows, exceptions)

        assert result[DAY] == [TimeWindow(900, 960, "video")]

    def test_addition_without_type_is_skipped(self):
        windows = {DAY: [TimeWindow(540, 600, "video")]}

        result = ExceptionMerger.apply(windows, [make_exception("added", time(14), time(15))])

        assert result[DAY] == [TimeWindow(540, 600, "video")]


def test_exceptions_outside_range_are_ignored():
    windows = {DAY: [TimeWindow(540, 720, "video")]}

    result = ExceptionMerger.apply(windows, [make_exception("blocked", day=date(2026, 4, 1))])

    assert result == {DAY: [TimeWindow(540, 720, "video")]}


def test_input_is_not_modified():
    original = [TimeWindow(540, 720, "video")]
    windows = {DAY: original}

    ExceptionMerger.apply(windows, [make_exception("blocked")])

    assert windows[DAY] is original
    assert original == [TimeWindow(540, 720, "video")]
