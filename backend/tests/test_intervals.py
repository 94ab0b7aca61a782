import pytest

from airman.services.intervals import minutes_to_hhmm, overlaps, parse_time_to_minutes, time_ranges_overlap


@pytest.mark.parametrize(
    "a, b",
    [
        ((540, 600), (570, 630)),
        ((540, 600), (600, 660)),
        ((540, 720), (600, 630)),
        ((0, 60), (1380, 1440)),
    ],
)
def test_overlap_is_symmetric(a, b):
    assert overlaps(*a, *b) == overlaps(*b, *a)


def test_interval_overlaps_itself_unless_degenerate():
    assert overlaps(600, 660, 600, 660) is True
    assert overlaps(600, 600, 600, 600) is False


def test_adjacent_intervals_do_not_overlap():
    assert time_ranges_overlap("09:00", "10:00", "10:00", "11:00") is False
    assert time_ranges_overlap("10:00", "11:00", "09:00", "10:00") is False


def test_partial_and_containing_overlaps():
    assert time_ranges_overlap("10:00", "11:00", "10:30", "11:30") is True
    assert time_ranges_overlap("09:00", "12:00", "10:00", "10:15") is True
    assert time_ranges_overlap("10:00", "10:01", "10:00", "10:01") is True


def test_parse_time_to_minutes():
    assert parse_time_to_minutes("00:00") == 0
    assert parse_time_to_minutes("09:30") == 570
    assert parse_time_to_minutes("23:59") == 1439
    assert minutes_to_hhmm(570) == "09:30"


@pytest.mark.parametrize("value", ["9:30", "24:00", "12:60", "1230", "", "ab:cd"])
def test_parse_time_rejects_malformed_values(value):
    with pytest.raises(ValueError):
        parse_time_to_minutes(value)
