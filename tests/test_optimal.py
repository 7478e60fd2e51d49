import pytest

import qr
from qr import make_segments_optimally
from qr_errors import DataTooLongError, InvalidVersionError
from qr_segment import (Mode, compute_character_modes, get_total_bits,
                        make_bytes, make_segments, make_segments_for_version)

MADOKA = ('「魔法少女まどか☆マ'
          'ギカ」って、　ИАИ'
          '　ｄｅｓｕ　κα？')

SAMPLES = [
    MADOKA,
    'Golden ratio φ = 1.618033988749894848204586834365638117720309179'
    '8057628621354486227052604628189024497072072041893911374......',
    'HELLO world 0123456789',
    'abc' + '1234567890' * 2,
    'https://EXAMPLE.COM/ABC/0123456789?x=1',
    '茗荷 123 ABC é',
]


def test_empty_text():
    assert make_segments_for_version('', 1) == []
    assert make_segments_optimally('') == []


def test_digits_stay_numeric():
    segs = make_segments_for_version('31415926535', 1)
    assert [s.mode for s in segs] == [Mode.NUMERIC]


def test_byte_then_numeric():
    segs = make_segments_for_version('abc' + '1234567890' * 2, 1)
    assert [(s.mode, s.num_chars) for s in segs] == [
        (Mode.BYTE, 3), (Mode.NUMERIC, 20)]
    assert get_total_bits(segs, 1) == 117
    assert get_total_bits(make_segments('abc' + '1234567890' * 2), 1) == 196


def test_madoka_is_one_kanji_segment():
    assert len(MADOKA) == 29
    segs = make_segments_for_version(MADOKA, 1)
    assert [(s.mode, s.num_chars) for s in segs] == [(Mode.KANJI, 29)]
    assert get_total_bits(segs, 1) == 4 + 8 + 29 * 13
    assert get_total_bits([make_bytes(MADOKA)], 1) == 4 + 8 + 82 * 8


@pytest.mark.parametrize('text, expected, bits', [
    # Three kanji in the middle pay for two extra headers
    ('日本語abc東京都xyz',
     [(Mode.KANJI, 3), (Mode.BYTE, 3), (Mode.KANJI, 3), (Mode.BYTE, 3)],
     4 * 12 + 3 * 13 + 3 * 8 + 3 * 13 + 3 * 8),
    # Two do not
    ('日本語abc漢字xyz', [(Mode.KANJI, 3), (Mode.BYTE, 12)],
     12 + 3 * 13 + 12 + 12 * 8),
])
def test_kanji_and_byte_runs(text, expected, bits):
    segs = make_segments_for_version(text, 1)
    assert [(s.mode, s.num_chars) for s in segs] == expected
    assert get_total_bits(segs, 1) == bits
    assert bits < get_total_bits([make_bytes(text)], 1)


def test_modes_per_code_point():
    modes = compute_character_modes([ord(c) for c in 'ab0123456789'], 1)
    assert modes == [Mode.BYTE] * 2 + [Mode.NUMERIC] * 10


@pytest.mark.parametrize('text', SAMPLES)
@pytest.mark.parametrize('version', [1, 10, 27])
def test_never_worse_than_single_mode(text, version):
    optimal = get_total_bits(make_segments_for_version(text, version),
                             version)
    assert optimal <= get_total_bits(make_segments(text), version)
    assert optimal <= get_total_bits([make_bytes(text)], version)


@pytest.mark.parametrize('text', SAMPLES)
def test_segments_cover_text(text):
    segs = make_segments_for_version(text, 1)
    chars = sum(s.num_chars for s in segs if s.mode is not Mode.BYTE)
    byte_len = sum(s.num_chars for s in segs if s.mode is Mode.BYTE)
    assert all(a.mode != b.mode for a, b in zip(segs, segs[1:]))
    assert chars <= len(text)
    assert byte_len + chars <= len(text.encode('utf-8'))


def test_optimal_respects_version_range():
    with pytest.raises(DataTooLongError):
        make_segments_optimally('a' * 100, qr.HIGH, 1, 2)
    with pytest.raises(InvalidVersionError):
        make_segments_optimally('a', qr.LOW, 5, 4)


def test_encode_text_optimized_is_no_larger():
    plain = qr.encode_text(MADOKA, qr.LOW)
    optimal = qr.encode_text(MADOKA, qr.LOW, optimize=True)
    assert optimal.version <= plain.version
