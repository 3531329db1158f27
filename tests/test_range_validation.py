"""
Unit Tests for serial range overlap detection and status derivation
"""
from types import SimpleNamespace

import pytest

from concessions.serials import serial_range
from concessions.utils import ranges_overlap, find_overlapping_booklet, calculate_booklet_status


def stub_booklet(serial_start, number=1):
    start, end = serial_range(serial_start)
    return SimpleNamespace(booklet_number=number, start_serial=start, end_serial=end)


class TestRangesOverlap:
    """Inclusive interval test between two serial ranges"""

    @pytest.fixture
    def existing(self):
        return serial_range('A0807550')

    def test_identical_ranges_overlap(self, existing):
        assert ranges_overlap(*existing, *existing)

    def test_partial_overlap_on_lower_edge(self, existing):
        assert ranges_overlap(*serial_range('A0807520'), *existing)

    def test_partial_overlap_on_upper_edge(self, existing):
        assert ranges_overlap(*serial_range('A0807599'), *existing)

    def test_candidate_inside_existing(self, existing):
        inner = serial_range('A0807560', total_pages=10)
        assert ranges_overlap(*inner, *existing)

    def test_existing_inside_candidate(self, existing):
        outer = serial_range('A0807500', total_pages=200)
        assert ranges_overlap(*outer, *existing)

    def test_adjacent_ranges_do_not_overlap(self, existing):
        assert not ranges_overlap(*serial_range('A0807600'), *existing)
        assert not ranges_overlap(*serial_range('A0807500'), *existing)

    def test_different_prefixes_never_overlap(self, existing):
        assert not ranges_overlap(*serial_range('B0807550'), *existing)


class TestFindOverlappingBooklet:

    def test_returns_first_conflict(self):
        existing = [
            stub_booklet('A0807450', number=1),
            stub_booklet('A0807550', number=2),
            stub_booklet('A0807580', number=3),
        ]
        conflict = find_overlapping_booklet(*serial_range('A0807570'), existing)
        assert conflict.booklet_number == 2

    def test_none_when_clear(self):
        existing = [stub_booklet('A0807550'), stub_booklet('B0807600', number=2)]
        assert find_overlapping_booklet(*serial_range('A0807600'), existing) is None

    def test_empty_registry(self):
        assert find_overlapping_booklet(*serial_range('A0807550'), []) is None


class TestCalculateBookletStatus:

    @pytest.mark.parametrize('bound, damaged_pages, is_damaged, expected', [
        (0, 0, False, 'AVAILABLE'),
        (1, 0, False, 'IN_USE'),
        (49, 0, False, 'IN_USE'),
        (50, 0, False, 'EXHAUSTED'),
        (48, 2, False, 'EXHAUSTED'),
        (47, 2, False, 'IN_USE'),
        (0, 0, True, 'DAMAGED'),
        (50, 0, True, 'DAMAGED'),
    ])
    def test_derivation(self, bound, damaged_pages, is_damaged, expected):
        assert calculate_booklet_status(bound, 50, is_damaged, damaged_pages_count=damaged_pages) == expected
