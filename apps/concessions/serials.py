# concessions/serials.py

"""
Booklet serial numbers.

A serial is one or more uppercase letters followed by one or more digits,
e.g. ``A0807550``. The digit count is the zero-pad width of every number
derived from the booklet, so ``A0807550`` + 49 is ``A0807599`` and
``B0100001`` + 2 is ``B0100003``.

Serials are parsed once into a ``Serial`` and carried structurally; strings
only appear at the persistence and display boundaries.
"""

from dataclasses import dataclass
from concessions.exceptions import FormatError
import re

SERIAL_PATTERN = re.compile(r'^([A-Z]+)([0-9]+)$')

# Numeric parts are stored in BigInteger columns
MAX_SERIAL_WIDTH = 18

SERIAL_FORMAT_MESSAGE = "Serial number must contain letters followed by numbers (e.g., A0807550)"


# Every booklet is a fixed run of pre-printed certificate pages
BOOKLET_TOTAL_PAGES = 50


def default_total_pages():
    return BOOKLET_TOTAL_PAGES


@dataclass(frozen=True)
class Serial:
    prefix: str
    number: int
    width: int

    def __str__(self):
        return format_serial(self.prefix, self.number, self.width)

    def at(self, offset):
        """The serial ``offset`` pages further on, same prefix and width."""
        number = self.number + offset
        if number < 0 or len(str(number)) > self.width:
            raise FormatError(
                f"Serial {self} + {offset} does not fit in {self.width} digits"
            )
        return Serial(self.prefix, number, self.width)


def normalize_serial(raw):
    """Uppercase and strip every whitespace character."""
    if raw is None:
        return ''
    return re.sub(r'\s+', '', str(raw)).upper()


def parse_serial(serial):
    """
    Split a serial string into its prefix, number and width.

    Args:
        serial: Uppercase serial such as "A0807550"

    Returns:
        Serial

    Raises:
        FormatError: If the string is empty or not letters followed by digits

    Example:
        >>> parse_serial("A0807550")
        Serial(prefix='A', number=807550, width=7)
    """
    if not serial:
        raise FormatError("Serial start number is required")

    match = SERIAL_PATTERN.match(serial)
    if not match:
        raise FormatError(SERIAL_FORMAT_MESSAGE)

    prefix, digits = match.groups()
    if len(digits) > MAX_SERIAL_WIDTH:
        raise FormatError(f"Serial number part may not exceed {MAX_SERIAL_WIDTH} digits")

    return Serial(prefix=prefix, number=int(digits), width=len(digits))


def format_serial(prefix, number, width):
    """Zero-pad ``number`` to ``width`` digits behind ``prefix``."""
    if number < 0:
        raise FormatError("Serial numbers cannot be negative")

    digits = str(number).zfill(width)
    if len(digits) > width:
        raise FormatError(f"{number} does not fit in {width} digits")

    return f"{prefix}{digits}"


def serial_range(serial_start, total_pages=None):
    """Parse ``serial_start`` and return its (start, end) Serial pair."""
    if total_pages is None:
        total_pages = default_total_pages()

    start = parse_serial(serial_start)
    try:
        end = start.at(total_pages - 1)
    except FormatError:
        raise FormatError(
            f"A booklet of {total_pages} pages starting at {serial_start} "
            f"would run past {start.width} digits"
        )
    return start, end


def range_end(serial_start, total_pages=None):
    """
    Last serial of a booklet starting at ``serial_start``.

    Example:
        >>> range_end("A0807550")
        'A0807599'
    """
    return str(serial_range(serial_start, total_pages)[1])
