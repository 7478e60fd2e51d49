import enum
import logging
import threading

import numpy as np

from qr_errors import (InvalidAlphanumericStringError,
                       InvalidCharacterCountError, InvalidECIDesignatorError,
                       InvalidKanjiStringError, InvalidNumericStringError,
                       InvalidTextError)

log = logging.getLogger(__name__)

ALPHANUMERIC_CHARSET = '0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ $%*+-./:'
_ALPHANUMERIC_INDEX = {c: i for i, c in enumerate(ALPHANUMERIC_CHARSET)}


class BitBuffer(list):

    def append_bits(self, value, length):
        if length < 0 or value >> length != 0:
            raise ValueError('Value out of range')
        self.extend((value >> i) & 1 for i in range(length - 1, -1, -1))


class Mode(enum.Enum):
    # (mode indicator, count field width for versions 1-9, 10-26, 27-40)
    NUMERIC = (0x1, (10, 12, 14))
    ALPHANUMERIC = (0x2, (9, 11, 13))
    BYTE = (0x4, (8, 16, 16))
    KANJI = (0x8, (8, 10, 12))
    ECI = (0x7, (0, 0, 0))

    @property
    def mode_bits(self):
        return self.value[0]

    def num_char_count_bits(self, version):
        return self.value[1][(version + 7) // 17]


class Segment:
    """An immutable run of data encoded in one mode.

    The factories below validate their input; the constructor itself only
    checks the character count, so data of any length is accepted.
    """

    __slots__ = ('_mode', '_num_chars', '_data')

    def __init__(self, mode, num_chars, data):
        if num_chars < 0:
            raise InvalidCharacterCountError()
        self._mode = mode
        self._num_chars = num_chars
        self._data = tuple(data)

    @property
    def mode(self):
        return self._mode

    @property
    def num_chars(self):
        return self._num_chars

    @property
    def data(self):
        return self._data

    def __eq__(self, other):
        if not isinstance(other, Segment):
            return NotImplemented
        return (self._mode, self._num_chars, self._data) == (
            other._mode, other._num_chars, other._data)

    def __hash__(self):
        return hash((self._mode, self._num_chars, self._data))

    def __repr__(self):
        return 'Segment(mode={}, num_chars={}, data=<{} bits>)'.format(
            self._mode.name, self._num_chars, len(self._data))


def is_numeric(text):
    return all('0' <= c <= '9' for c in text)


def is_alphanumeric(text):
    return all(c in _ALPHANUMERIC_INDEX for c in text)


def to_utf8(text):
    try:
        return text.encode('utf-8')
    except UnicodeEncodeError:
        raise InvalidTextError() from None


def make_bytes(data):
    if isinstance(data, str):
        data = to_utf8(data)
    bb = BitBuffer()
    for b in data:
        bb.append_bits(b, 8)
    return Segment(Mode.BYTE, len(data), bb)


def make_numeric(digits):
    bb = BitBuffer()
    accum = 0
    count = 0
    for c in digits:
        if not '0' <= c <= '9':
            raise InvalidNumericStringError()
        accum = accum * 10 + ord(c) - ord('0')
        count += 1
        if count == 3:
            bb.append_bits(accum, 10)
            accum = 0
            count = 0
    # 1 or 2 digits left over
    if count > 0:
        bb.append_bits(accum, count * 3 + 1)
    return Segment(Mode.NUMERIC, len(digits), bb)


def make_alphanumeric(text):
    bb = BitBuffer()
    accum = 0
    count = 0
    for c in text:
        index = _ALPHANUMERIC_INDEX.get(c)
        if index is None:
            raise InvalidAlphanumericStringError()
        accum = accum * 45 + index
        count += 1
        if count == 2:
            bb.append_bits(accum, 11)
            accum = 0
            count = 0
    if count > 0:
        bb.append_bits(accum, 6)
    return Segment(Mode.ALPHANUMERIC, len(text), bb)


def make_kanji(text):
    bb = BitBuffer()
    for c in text:
        value = to_kanji(c)
        if value is None:
            raise InvalidKanjiStringError()
        bb.append_bits(value, 13)
    return Segment(Mode.KANJI, len(text), bb)


def make_eci(designator):
    bb = BitBuffer()
    if designator < 0:
        raise InvalidECIDesignatorError()
    elif designator < 1 << 7:
        bb.append_bits(designator, 8)
    elif designator < 1 << 14:
        bb.append_bits(designator, 14)
    elif designator < 1000000:
        bb.append_bits(0b110, 3)
        bb.append_bits(designator, 21)
    else:
        raise InvalidECIDesignatorError()
    return Segment(Mode.ECI, 0, bb)


def make_segments(text):
    if not text:
        return []
    if is_numeric(text):
        return [make_numeric(text)]
    if is_alphanumeric(text):
        return [make_alphanumeric(text)]
    return [make_bytes(to_utf8(text))]


def get_total_bits(segs, version):
    """Bits needed for segs at version, or None if some segment has too
    many characters for its count field."""
    result = 0
    for seg in segs:
        ccbits = seg.mode.num_char_count_bits(version)
        if seg.num_chars >= 1 << ccbits:
            return None
        result += 4 + ccbits + len(seg.data)
    return result


# Kanji

_kanji_table = None
_kanji_lock = threading.Lock()


def _sjis_codes():
    for lead in list(range(0x81, 0xA0)) + list(range(0xE0, 0xEC)):
        for trail in range(0x40, 0xFD):
            if trail == 0x7F:
                continue
            code = lead << 8 | trail
            if 0x8140 <= code <= 0x9FFC or 0xE040 <= code <= 0xEBBF:
                yield code


def _build_kanji_table():
    table = np.full(1 << 16, -1, dtype=np.int16)
    for code in _sjis_codes():
        try:
            char = bytes((code >> 8, code & 0xFF)).decode('shift_jis')
        except UnicodeDecodeError:
            continue
        if len(char) != 1 or ord(char) >= 1 << 16:
            continue
        diff = code - (0x8140 if code <= 0x9FFC else 0xC140)
        if table[ord(char)] == -1:
            table[ord(char)] = (diff >> 8) * 0xC0 + (diff & 0xFF)
    table.flags.writeable = False
    return table


def kanji_table():
    global _kanji_table
    if _kanji_table is None:
        with _kanji_lock:
            if _kanji_table is None:
                _kanji_table = _build_kanji_table()
                log.debug('Built kanji table with %d entries',
                          int(np.count_nonzero(_kanji_table >= 0)))
    return _kanji_table


def to_kanji(char):
    cp = char if isinstance(char, int) else ord(char)
    if not 0 <= cp < 1 << 16:
        return None
    value = int(kanji_table()[cp])
    return None if value == -1 else value


def is_kanji(char):
    return to_kanji(char) is not None


def is_encodable_as_kanji(text):
    return all(is_kanji(c) for c in text)


# Optimal segmentation

# Order matters: byte first, so it wins ties
_MODE_TYPES = (Mode.BYTE, Mode.ALPHANUMERIC, Mode.NUMERIC, Mode.KANJI)


def count_utf8_bytes(cp):
    if cp < 0x80:
        return 1
    if cp < 0x800:
        return 2
    if cp < 0x10000:
        return 3
    if cp < 0x110000:
        return 4
    raise ValueError('Invalid code point')


def compute_character_modes(code_points, version):
    """Mode per code point minimising total bits at version.

    Costs are measured in sixths of a bit.
    """
    assert code_points
    num_modes = len(_MODE_TYPES)
    head_costs = [(4 + m.num_char_count_bits(version)) * 6
                  for m in _MODE_TYPES]

    # char_modes[i][j]: mode of code point i on the cheapest path that ends
    # in _MODE_TYPES[j]; None where that ending is impossible
    char_modes = [[None] * num_modes for _ in code_points]
    prev_costs = list(head_costs)

    for i, cp in enumerate(code_points):
        c = chr(cp)
        cur_costs = [0] * num_modes
        modes = char_modes[i]
        # Byte mode can always be extended
        cur_costs[0] = prev_costs[0] + count_utf8_bytes(cp) * 8 * 6
        modes[0] = _MODE_TYPES[0]
        if c in _ALPHANUMERIC_INDEX:
            cur_costs[1] = prev_costs[1] + 33
            modes[1] = _MODE_TYPES[1]
        if '0' <= c <= '9':
            cur_costs[2] = prev_costs[2] + 20
            modes[2] = _MODE_TYPES[2]
        if is_kanji(cp):
            cur_costs[3] = prev_costs[3] + 78
            modes[3] = _MODE_TYPES[3]

        # Switch modes by closing the segment on a whole bit
        for j in range(num_modes):
            for k in range(num_modes):
                new_cost = (cur_costs[k] + 5) // 6 * 6 + head_costs[j]
                if modes[k] is not None and (modes[j] is None
                                             or new_cost < cur_costs[j]):
                    cur_costs[j] = new_cost
                    modes[j] = _MODE_TYPES[k]
        prev_costs = cur_costs

    cur_mode = None
    min_cost = 0
    for j in range(num_modes):
        if cur_mode is None or prev_costs[j] < min_cost:
            min_cost = prev_costs[j]
            cur_mode = _MODE_TYPES[j]

    result = [None] * len(code_points)
    for i in range(len(code_points) - 1, -1, -1):
        cur_mode = char_modes[i][_MODE_TYPES.index(cur_mode)]
        assert cur_mode is not None
        result[i] = cur_mode
    return result


_MAKERS = {
    Mode.BYTE: make_bytes,
    Mode.NUMERIC: make_numeric,
    Mode.ALPHANUMERIC: make_alphanumeric,
    Mode.KANJI: make_kanji,
}


def split_into_segments(code_points, char_modes):
    assert code_points
    result = []
    start = 0
    for i in range(1, len(code_points) + 1):
        if i < len(code_points) and char_modes[i] == char_modes[start]:
            continue
        text = ''.join(map(chr, code_points[start:i]))
        result.append(_MAKERS[char_modes[start]](text))
        start = i
    return result


def make_segments_for_version(text, version):
    code_points = [ord(c) for c in text]
    if not code_points:
        return []
    modes = compute_character_modes(code_points, version)
    return split_into_segments(code_points, modes)
