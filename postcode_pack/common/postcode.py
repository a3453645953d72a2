"""Canonical UK postcode validation and ordinal encoding.

The canonical form is the 7-character ONSPD ``pcd7`` layout: the outward code
left-aligned and space padded to four characters, followed by the three
character inward code, e.g. ``"AB1 0AA"``, ``"AB101AB"``, ``"B1  1AA"``.

Positions 0-1 are validated but not encoded because they select the bucket in
the pack index. Positions 2-6 are packed into a mixed-radix ordinal, most
significant first::

    value = c2 * (26*26*10*37) + c3 * (26*26*10) + c4 * (26*26) + c5 * 26 + c6

with ``c2, c3`` in ``[0, 36]`` (letters, digits, space), ``c4`` in ``[0, 9]``
and ``c5, c6`` in ``[0, 25]``. The largest value is well below ``2**24``.
"""

from __future__ import annotations

from postcode_pack.common.errors import InvalidFormatError

CANONICAL_LENGTH = 7
ORDINAL_LIMIT = 2**24

_LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_DIGITS = "0123456789"
_ALNUM_SPACE = _LETTERS + _DIGITS + " "
_VALID_FREE_TEXT = set(_LETTERS + _LETTERS.lower() + _DIGITS + " ")

_RADIX_C6 = 1
_RADIX_C5 = 26
_RADIX_C4 = 26 * 26
_RADIX_C3 = 26 * 26 * 10
_RADIX_C2 = 26 * 26 * 10 * 37


def _encode_az(ch: str) -> int:
    if "A" <= ch <= "Z":
        return ord(ch) - ord("A")
    raise InvalidFormatError(f"Expected a letter, got {ch!r}")


def _encode_09(ch: str) -> int:
    if "0" <= ch <= "9":
        return ord(ch) - ord("0")
    raise InvalidFormatError(f"Expected a digit, got {ch!r}")


def _encode_az09(ch: str) -> int:
    if "A" <= ch <= "Z":
        return ord(ch) - ord("A")
    if "0" <= ch <= "9":
        return ord(ch) - ord("0") + 26
    raise InvalidFormatError(f"Expected a letter or digit, got {ch!r}")


def _encode_az09_space(ch: str) -> int:
    if ch == " ":
        return 36
    return _encode_az09(ch)


def encode_postcode(postcode: str) -> int:
    """Return the 24-bit ordinal for a canonical postcode.

    Raises InvalidFormatError when the text is shorter than seven characters
    or any position is outside its character class.
    """
    if len(postcode) < CANONICAL_LENGTH:
        raise InvalidFormatError(f"Postcode format not recognised: {postcode!r}")

    _encode_az(postcode[0])
    _encode_az09(postcode[1])

    value = (
        _RADIX_C2 * _encode_az09_space(postcode[2])
        + _RADIX_C3 * _encode_az09_space(postcode[3])
        + _RADIX_C4 * _encode_09(postcode[4])
        + _RADIX_C5 * _encode_az(postcode[5])
        + _RADIX_C6 * _encode_az(postcode[6])
    )
    assert value < ORDINAL_LIMIT
    return value


def decode_ordinal(value: int) -> str:
    """Return positions 2-6 of the canonical postcode for an ordinal."""
    if not 0 <= value < ORDINAL_LIMIT:
        raise InvalidFormatError(f"Ordinal out of range: {value}")

    rest, c6 = divmod(value, 26)
    rest, c5 = divmod(rest, 26)
    rest, c4 = divmod(rest, 10)
    c2, c3 = divmod(rest, 37)
    if c2 > 36:
        raise InvalidFormatError(f"Ordinal does not decode to a postcode: {value}")

    return "".join(
        (
            _ALNUM_SPACE[c2],
            _ALNUM_SPACE[c3],
            _DIGITS[c4],
            _LETTERS[c5],
            _LETTERS[c6],
        )
    )


def is_valid_postcode(value: str) -> bool:
    try:
        encode_postcode(value)
    except InvalidFormatError:
        return False
    return True


def format_postcode(raw: str) -> str:
    """Normalise free text such as ``"sw1a 2aa"`` to the canonical 7-character form."""
    if any(ch not in _VALID_FREE_TEXT for ch in raw):
        raise InvalidFormatError(f"Postcode format not recognised: {raw!r}")

    code = raw.replace(" ", "").upper()
    # Outward-only codes (2-4 characters) need a format version 2 pack.
    if len(code) < 5 or len(code) > 7:
        raise InvalidFormatError(f"Postcode format not recognised: {raw!r}")

    outward, inward = code[:-3], code[-3:]
    return f"{outward:<4}{inward}"
