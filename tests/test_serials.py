"""
Unit Tests for booklet serial parsing and formatting
"""
import pytest

from concessions.exceptions import FormatError
from concessions.serials import (
    Serial,
    parse_serial,
    format_serial,
    range_end,
    serial_range,
    normalize_serial,
)


class TestParseSerial:
    """Splitting serial strings into prefix, number and width"""

    def test_single_letter_prefix(self):
        assert parse_serial('A0807550') == Serial(prefix='A', number=807550, width=7)

    def test_multi_letter_prefix(self):
        assert parse_serial('KR00012') == Serial(prefix='KR', number=12, width=5)

    def test_all_zero_number(self):
        serial = parse_serial('B000')
        assert serial.number == 0
        assert serial.width == 3

    @pytest.mark.parametrize('raw', [
        '',
        'a0807550',
        '0807550',
        'A',
        'A08-07550',
        'A0807550B',
        'A 0807550',
    ])
    def test_rejects_malformed(self, raw):
        with pytest.raises(FormatError):
            parse_serial(raw)

    def test_rejects_numbers_too_wide_for_storage(self):
        with pytest.raises(FormatError):
            parse_serial('A' + '1' * 19)

    def test_format_error_points_at_serial_field(self):
        with pytest.raises(FormatError) as excinfo:
            parse_serial('bad')
        assert excinfo.value.field == 'serial_start_number'


class TestFormatSerial:
    """Zero-padded serial rendering"""

    def test_pads_to_width(self):
        assert format_serial('A', 807553, 7) == 'A0807553'

    def test_keeps_leading_zeros(self):
        assert format_serial('B', 3, 7) == 'B0000003'

    def test_parsed_serial_renders_unchanged(self):
        for raw in ('A0807550', 'B0100001', 'XY000', 'C9'):
            assert str(parse_serial(raw)) == raw

    def test_rejects_number_wider_than_width(self):
        with pytest.raises(FormatError):
            format_serial('A', 10000, 4)


class TestSerialRange:
    """Booklet range derivation"""

    def test_range_end_of_standard_booklet(self):
        assert range_end('A0807550') == 'A0807599'

    def test_range_spans_forty_nine_serials(self):
        start, end = serial_range('B0100001')
        assert end.number - start.number == 49
        assert end.prefix == start.prefix
        assert end.width == start.width

    def test_range_end_respects_page_count(self):
        assert range_end('A0807550', total_pages=10) == 'A0807559'

    def test_range_end_uses_booklet_page_count(self, monkeypatch):
        monkeypatch.setattr('concessions.serials.BOOKLET_TOTAL_PAGES', 25)
        assert range_end('A0807550') == 'A0807574'

    def test_page_count_is_not_a_setting(self, settings):
        settings.CONCESSION_BOOKLET_TOTAL_PAGES = 10
        assert range_end('A0807550') == 'A0807599'

    def test_range_reaching_last_value_of_width(self):
        assert range_end('A9950') == 'A9999'

    def test_range_overflowing_width_is_refused(self):
        with pytest.raises(FormatError):
            range_end('A9960')

    def test_serial_at_offset(self):
        assert str(parse_serial('A0807550').at(3)) == 'A0807553'


class TestNormalizeSerial:

    def test_uppercases_and_strips_whitespace(self):
        assert normalize_serial(' a08 07550\n') == 'A0807550'

    def test_none_becomes_empty(self):
        assert normalize_serial(None) == ''
