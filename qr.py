import json
import logging
import os
import sys

import cv2
import numpy as np

import qr_render
from qr_ecc import generator, remainder
from qr_errors import (DataTooLongError, InvalidCodewordCountError,
                       InvalidCorrectionLevelError, InvalidMaskError,
                       InvalidVersionError, QRError)
from qr_segment import (BitBuffer, get_total_bits, make_bytes, make_segments,
                        make_segments_for_version)

log = logging.getLogger(__name__)

MIN_VERSION = 1
MAX_VERSION = 40

LOW, MEDIUM, QUARTILE, HIGH = 'L', 'M', 'Q', 'H'
LEVELS = (LOW, MEDIUM, QUARTILE, HIGH)
FORMAT_BITS = {LOW: 1, MEDIUM: 0, QUARTILE: 3, HIGH: 2}

PENALTY_N1 = 3
PENALTY_N2 = 3
PENALTY_N3 = 40
PENALTY_N4 = 10

# Indexed by version, index 0 is padding
ECC_CODEWORDS_PER_BLOCK = {
    LOW: (None, 7, 10, 15, 20, 26, 18, 20, 24, 30, 18, 20, 24, 26, 30, 22,
          24, 28, 30, 28, 28, 28, 28, 30, 30, 26, 28, 30, 30, 30, 30, 30, 30,
          30, 30, 30, 30, 30, 30, 30, 30),
    MEDIUM: (None, 10, 16, 26, 18, 24, 16, 18, 22, 22, 26, 30, 22, 22, 24,
             24, 28, 28, 26, 26, 26, 26, 28, 28, 28, 28, 28, 28, 28, 28, 28,
             28, 28, 28, 28, 28, 28, 28, 28, 28, 28),
    QUARTILE: (None, 13, 22, 18, 26, 18, 24, 18, 22, 20, 24, 28, 26, 24, 20,
               30, 24, 28, 28, 26, 30, 28, 30, 30, 30, 30, 28, 30, 30, 30,
               30, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30),
    HIGH: (None, 17, 28, 22, 16, 22, 28, 26, 26, 24, 28, 24, 28, 22, 24, 24,
           30, 28, 28, 26, 28, 30, 24, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30,
           30, 30, 30, 30, 30, 30, 30, 30),
}

NUM_ERROR_CORRECTION_BLOCKS = {
    LOW: (None, 1, 1, 1, 1, 1, 2, 2, 2, 2, 4, 4, 4, 4, 4, 6, 6, 6, 6, 7, 8,
          8, 9, 9, 10, 12, 12, 12, 13, 14, 15, 16, 17, 18, 19, 19, 20, 21,
          22, 24, 25),
    MEDIUM: (None, 1, 1, 1, 2, 2, 4, 4, 4, 5, 5, 5, 8, 9, 9, 10, 10, 11, 13,
             14, 16, 17, 17, 18, 20, 21, 23, 25, 26, 28, 29, 31, 33, 35, 37,
             38, 40, 43, 45, 47, 49),
    QUARTILE: (None, 1, 1, 2, 2, 4, 4, 6, 6, 8, 8, 8, 10, 12, 16, 12, 17, 16,
               18, 21, 20, 23, 23, 25, 27, 29, 34, 34, 35, 38, 40, 43, 45, 48,
               51, 53, 56, 59, 62, 65, 68),
    HIGH: (None, 1, 1, 2, 4, 4, 4, 5, 6, 8, 8, 11, 11, 16, 16, 18, 16, 19,
           21, 25, 25, 25, 34, 30, 32, 35, 37, 40, 42, 45, 48, 51, 54, 57, 60,
           63, 66, 70, 74, 77, 81),
}

_DIST = np.abs(np.arange(-4, 5))
# Chebyshev distance from the pattern centre
FINDER = ~np.isin(np.maximum.outer(_DIST, _DIST), (2, 4))
ALIGNMENT = np.maximum.outer(_DIST[2:7], _DIST[2:7]) != 1

MASKS = (
    lambda x, y: (x + y) % 2 == 0,
    lambda x, y: y % 2 == 0,
    lambda x, y: x % 3 == 0,
    lambda x, y: (x + y) % 3 == 0,
    lambda x, y: (x // 3 + y // 2) % 2 == 0,
    lambda x, y: x * y % 2 + x * y % 3 == 0,
    lambda x, y: (x * y % 2 + x * y % 3) % 2 == 0,
    lambda x, y: ((x + y) % 2 + x * y % 3) % 2 == 0,
)


class QrCode:
    """An immutable QR Code symbol. Modules are True for black."""

    __slots__ = ('_version', '_ecl', '_mask', '_modules')

    def __init__(self, version, ecl, mask, modules):
        self._version = version
        self._ecl = ecl
        self._mask = mask
        self._modules = np.array(modules, dtype=bool)
        self._modules.flags.writeable = False

    @property
    def version(self):
        return self._version

    @property
    def size(self):
        return self._version * 4 + 17

    @property
    def ecl(self):
        return self._ecl

    @property
    def mask(self):
        return self._mask

    @property
    def modules(self):
        return self._modules

    def module(self, x, y):
        return (0 <= x < self.size and 0 <= y < self.size
                and bool(self._modules[y, x]))

    def __eq__(self, other):
        if not isinstance(other, QrCode):
            return NotImplemented
        return (self._version == other._version and self._ecl == other._ecl
                and self._mask == other._mask
                and np.array_equal(self._modules, other._modules))

    def __hash__(self):
        return hash((self._version, self._ecl, self._mask,
                     self._modules.tobytes()))

    def __repr__(self):
        return 'QrCode(version={}, ecl={!r}, mask={})'.format(
            self._version, self._ecl, self._mask)


# Parameters

def parse_ecl(ecl):
    if isinstance(ecl, str) and ecl.upper() in LEVELS:
        return ecl.upper()
    raise InvalidCorrectionLevelError()


def check_version(version):
    if not MIN_VERSION <= version <= MAX_VERSION:
        raise InvalidVersionError()


def check_version_range(min_version, max_version):
    check_version(min_version)
    check_version(max_version)
    if min_version > max_version:
        raise InvalidVersionError()


def check_mask(mask):
    if not -1 <= mask <= 7:
        raise InvalidMaskError()


def get_num_raw_data_modules(version):
    """Data bits available after function modules, remainder bits included."""
    check_version(version)
    result = (16 * version + 128) * version + 64
    if version >= 2:
        num_align = version // 7 + 2
        result -= (25 * num_align - 10) * num_align - 55
        if version >= 7:
            result -= 36
    assert 208 <= result <= 29648
    return result


def get_num_data_codewords(version, ecl):
    return (get_num_raw_data_modules(version) // 8
            - ECC_CODEWORDS_PER_BLOCK[ecl][version]
            * NUM_ERROR_CORRECTION_BLOCKS[ecl][version])


def get_alignment_pattern_positions(version):
    check_version(version)
    if version == 1:
        return []
    num_align = version // 7 + 2
    if version == 32:
        step = 26
    else:
        step = (version * 4 + num_align * 2 + 1) // (num_align * 2 - 2) * 2
    pos = version * 4 + 17 - 7
    result = [pos - step * i for i in range(num_align - 1)]
    return [6] + result[::-1]


def format_bits(ecl, mask):
    data = FORMAT_BITS[ecl] << 3 | mask
    rem = data
    for _ in range(10):
        rem = (rem << 1) ^ ((rem >> 9) * 0x537)
    return (data << 10 | rem) ^ 0x5412


def version_bits(version):
    rem = version
    for _ in range(12):
        rem = (rem << 1) ^ ((rem >> 11) * 0x1F25)
    return version << 12 | rem


# Function patterns

def _bit(value, i):
    return (value >> i) & 1 != 0


def _set(modules, function, x, y, black):
    modules[y, x] = black
    function[y, x] = True


def _draw_pattern(modules, function, pattern, cx, cy):
    # Clipped at the symbol edges
    size = modules.shape[0]
    r = pattern.shape[0] // 2
    x0, y0 = max(cx - r, 0), max(cy - r, 0)
    x1, y1 = min(cx + r + 1, size), min(cy + r + 1, size)
    modules[y0:y1, x0:x1] = pattern[y0 - cy + r:y1 - cy + r,
                                    x0 - cx + r:x1 - cx + r]
    function[y0:y1, x0:x1] = True


def timing(modules, function):
    line = np.arange(modules.shape[0]) % 2 == 0
    modules[6, :] = line
    modules[:, 6] = line
    function[6, :] = True
    function[:, 6] = True


def finders(modules, function):
    size = modules.shape[0]
    for cx, cy in ((3, 3), (size - 4, 3), (3, size - 4)):
        _draw_pattern(modules, function, FINDER, cx, cy)


def alignment_patterns(modules, function, version):
    positions = get_alignment_pattern_positions(version)
    last = len(positions) - 1
    for i, x in enumerate(positions):
        for j, y in enumerate(positions):
            if (i, j) in ((0, 0), (0, last), (last, 0)):
                continue
            _draw_pattern(modules, function, ALIGNMENT, x, y)


def draw_format(modules, function, ecl, mask):
    size = modules.shape[0]
    bits = format_bits(ecl, mask)
    for i in range(6):
        _set(modules, function, 8, i, _bit(bits, i))
    _set(modules, function, 8, 7, _bit(bits, 6))
    _set(modules, function, 8, 8, _bit(bits, 7))
    _set(modules, function, 7, 8, _bit(bits, 8))
    for i in range(9, 15):
        _set(modules, function, 14 - i, 8, _bit(bits, i))
    for i in range(8):
        _set(modules, function, size - 1 - i, 8, _bit(bits, i))
    for i in range(8, 15):
        _set(modules, function, 8, size - 15 + i, _bit(bits, i))
    # Dark module
    _set(modules, function, 8, size - 8, True)


def draw_version(modules, function, version):
    if version < 7:
        return
    size = modules.shape[0]
    bits = version_bits(version)
    for i in range(18):
        a = size - 11 + i % 3
        b = i // 3
        _set(modules, function, a, b, _bit(bits, i))
        _set(modules, function, b, a, _bit(bits, i))


def _draw_function_patterns(version, ecl):
    size = version * 4 + 17
    modules = np.zeros((size, size), dtype=bool)
    function = np.zeros((size, size), dtype=bool)
    timing(modules, function)
    finders(modules, function)
    alignment_patterns(modules, function, version)
    # Placeholder mask, redrawn once the mask is known
    draw_format(modules, function, ecl, 0)
    draw_version(modules, function, version)
    return modules, function


def function_modules(version):
    check_version(version)
    function = _draw_function_patterns(version, MEDIUM)[1]
    function.flags.writeable = False
    return function


# Codewords

def ecc(data, version, ecl):
    """Split data into blocks, append ECC to each and interleave."""
    num_blocks = NUM_ERROR_CORRECTION_BLOCKS[ecl][version]
    block_ecc_len = ECC_CODEWORDS_PER_BLOCK[ecl][version]
    raw_codewords = get_num_raw_data_modules(version) // 8
    num_short_blocks = num_blocks - raw_codewords % num_blocks
    short_block_len = raw_codewords // num_blocks

    divisor = generator(block_ecc_len)
    blocks = []
    k = 0
    for i in range(num_blocks):
        length = short_block_len - block_ecc_len + (i >= num_short_blocks)
        block = list(data[k:k + length])
        k += length
        block_ecc = remainder(block, divisor)
        if i < num_short_blocks:
            block.append(0)
        blocks.append(block + block_ecc)

    result = []
    for i in range(len(blocks[0])):
        for j, block in enumerate(blocks):
            # Short blocks have no codeword at the padding position
            if i != short_block_len - block_ecc_len or j >= num_short_blocks:
                result.append(block[i])
    assert len(result) == raw_codewords
    return result


def place(modules, function, codewords):
    size = modules.shape[0]
    bits = np.unpackbits(np.array(codewords, dtype=np.uint8))
    i = 0
    right = size - 1
    while right >= 1:
        # Skip the vertical timing pattern
        if right == 6:
            right = 5
        upward = ((right + 1) & 2) == 0
        for vert in range(size):
            y = size - 1 - vert if upward else vert
            for x in (right, right - 1):
                if not function[y, x] and i < len(bits):
                    modules[y, x] = bits[i]
                    i += 1
        right -= 2
    # Remainder bits stay white
    assert i == len(bits)


# Masking

def mask_pattern(mask, size):
    if not 0 <= mask <= 7:
        raise InvalidMaskError()
    y, x = np.indices((size, size))
    return MASKS[mask](x, y)


def apply_mask(modules, function, mask):
    modules ^= mask_pattern(mask, modules.shape[0]) & ~function


def _add_history(run_length, history, size):
    if history[0] == 0:
        # White border before the first run
        run_length += size
    history.insert(0, run_length)
    history.pop()


def _count_patterns(history):
    # Only valid right after a white run was added
    n = history[1]
    core = (n > 0 and history[2] == n and history[3] == n * 3
            and history[4] == n and history[5] == n)
    return ((core and history[0] >= n * 4 and history[6] >= n)
            + (core and history[6] >= n * 4 and history[0] >= n))


def _terminate_and_count(run_color, run_length, history, size):
    if run_color:
        _add_history(run_length, history, size)
        run_length = 0
    # White border after the last run
    _add_history(run_length + size, history, size)
    return _count_patterns(history)


def _line_penalty(line):
    size = len(line)
    result = 0
    run_color = False
    run_length = 0
    history = [0] * 7
    for color in line:
        if color == run_color:
            run_length += 1
            if run_length == 5:
                result += PENALTY_N1
            elif run_length > 5:
                result += 1
        else:
            _add_history(run_length, history, size)
            if not run_color:
                result += _count_patterns(history) * PENALTY_N3
            run_color = color
            run_length = 1
    result += _terminate_and_count(
        run_color, run_length, history, size) * PENALTY_N3
    return result


def _evaluate_lines(modules):
    return (sum(_line_penalty(row) for row in modules.tolist())
            + sum(_line_penalty(col) for col in modules.T.tolist()))


def _evaluate_blocks(modules):
    sums = cv2.filter2D(modules.astype(np.uint8), -1,
                        np.ones((2, 2), np.float32), anchor=(0, 0))
    sums = sums[:-1, :-1]
    return int(np.count_nonzero((sums == 0) | (sums == 4))) * PENALTY_N2


def _evaluate_balance(modules):
    black = int(np.count_nonzero(modules))
    total = modules.size
    # Smallest k with (45-5k)% <= black/total <= (55+5k)%
    k = (abs(black * 20 - total * 10) + total - 1) // total - 1
    return k * PENALTY_N4


def penalty_score(modules):
    return (_evaluate_lines(modules) + _evaluate_blocks(modules)
            + _evaluate_balance(modules))


def select_mask(modules, function, ecl):
    best = None
    min_penalty = None
    for mask in range(8):
        apply_mask(modules, function, mask)
        draw_format(modules, function, ecl, mask)
        penalty = penalty_score(modules)
        log.debug('Mask %d penalty %d', mask, penalty)
        # First mask wins ties
        if min_penalty is None or penalty < min_penalty:
            best, min_penalty = mask, penalty
        apply_mask(modules, function, mask)
    return best


# Entry points

def construct(version, ecl, data_codewords, mask=-1):
    """Build a symbol from fully padded data codewords (low level)."""
    check_version(version)
    ecl = parse_ecl(ecl)
    check_mask(mask)
    data = bytes(data_codewords)
    if len(data) != get_num_data_codewords(version, ecl):
        raise InvalidCodewordCountError()

    modules, function = _draw_function_patterns(version, ecl)
    place(modules, function, ecc(data, version, ecl))
    if mask == -1:
        mask = select_mask(modules, function, ecl)
    apply_mask(modules, function, mask)
    draw_format(modules, function, ecl, mask)
    log.debug('Version %d-%s, mask %d', version, ecl, mask)
    return QrCode(version, ecl, mask, modules)


def make_data_codewords(segs, version, ecl):
    ecl = parse_ecl(ecl)
    capacity = get_num_data_codewords(version, ecl) * 8
    used = get_total_bits(segs, version)
    if used is None or used > capacity:
        raise DataTooLongError(used, capacity)

    bb = BitBuffer()
    for seg in segs:
        bb.append_bits(seg.mode.mode_bits, 4)
        bb.append_bits(seg.num_chars, seg.mode.num_char_count_bits(version))
        bb.extend(seg.data)
    assert len(bb) == used

    # Terminator, then pad to a byte boundary
    bb.append_bits(0, min(4, capacity - len(bb)))
    bb.append_bits(0, -len(bb) % 8)
    pad = 0xEC
    while len(bb) < capacity:
        bb.append_bits(pad, 8)
        pad ^= 0xEC ^ 0x11
    return np.packbits(np.array(bb, dtype=np.uint8)).tobytes()


def encode_segments(segs, ecl=MEDIUM, min_version=MIN_VERSION,
                    max_version=MAX_VERSION, mask=-1, boost_ecl=True):
    segs = list(segs)
    ecl = parse_ecl(ecl)
    check_version_range(min_version, max_version)
    check_mask(mask)

    for version in range(min_version, max_version + 1):
        capacity = get_num_data_codewords(version, ecl) * 8
        used = get_total_bits(segs, version)
        if used is not None and used <= capacity:
            break
    else:
        raise DataTooLongError(used, capacity)

    if boost_ecl:
        for level in LEVELS[LEVELS.index(ecl) + 1:]:
            if used <= get_num_data_codewords(version, level) * 8:
                ecl = level
    log.debug('Version %d-%s holds %d of %d bits', version, ecl, used,
              get_num_data_codewords(version, ecl) * 8)
    return construct(version, ecl, make_data_codewords(segs, version, ecl),
                     mask)


def make_segments_optimally(text, ecl=MEDIUM, min_version=MIN_VERSION,
                            max_version=MAX_VERSION):
    check_version_range(min_version, max_version)
    ecl = parse_ecl(ecl)

    segs = None
    for version in range(min_version, max_version + 1):
        # The split only changes where the count field widths change
        if version in (min_version, 10, 27):
            segs = make_segments_for_version(text, version)
        capacity = get_num_data_codewords(version, ecl) * 8
        used = get_total_bits(segs, version)
        if used is not None and used <= capacity:
            log.debug('Optimal split: %d segments, %d bits at version %d',
                      len(segs), used, version)
            return segs
    raise DataTooLongError(used, capacity)


def encode_text(text, ecl=MEDIUM, min_version=MIN_VERSION,
                max_version=MAX_VERSION, mask=-1, boost_ecl=True,
                optimize=False):
    if optimize:
        segs = make_segments_optimally(text, ecl, min_version, max_version)
    else:
        segs = make_segments(text)
    return encode_segments(segs, ecl, min_version, max_version, mask,
                           boost_ecl)


def encode_binary(data, ecl=MEDIUM, min_version=MIN_VERSION,
                  max_version=MAX_VERSION, mask=-1, boost_ecl=True):
    return encode_segments([make_bytes(bytes(data))], ecl, min_version,
                           max_version, mask, boost_ecl)


def encode(payload, ecl=MEDIUM, min_version=MIN_VERSION,
           max_version=MAX_VERSION, mask=-1, boost_ecl=True):
    if isinstance(payload, str):
        return encode_text(payload, ecl, min_version, max_version, mask,
                           boost_ecl)
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return encode_binary(payload, ecl, min_version, max_version, mask,
                             boost_ecl)
    return encode_segments(payload, ecl, min_version, max_version, mask,
                           boost_ecl)


def generate_qr(content, version=None, ec=MEDIUM, mask=-1, optimize=False):
    if version is None:
        min_version, max_version = MIN_VERSION, MAX_VERSION
    else:
        try:
            min_version = max_version = int(version)
        except (TypeError, ValueError):
            raise InvalidVersionError() from None
    try:
        mask = int(mask)
    except (TypeError, ValueError):
        raise InvalidMaskError() from None
    return encode_text(content, ec, min_version, max_version, mask,
                       optimize=bool(optimize))


def main():
    logging.basicConfig(
        level=os.environ.get('QR_LOG_LEVEL', 'WARNING').upper())
    args = json.load(sys.stdin)
    try:
        qr = generate_qr(args['content'], args.get('version'),
                         args.get('ec', MEDIUM), args.get('mask', -1),
                         args.get('optimize', False))
    except QRError as e:
        sys.exit(str(e))
    print(qr_render.to_bits(qr), end='')


if __name__ == '__main__':
    main()
