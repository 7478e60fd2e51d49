import cv2
import numpy as np
import pytest

import qr
import qr_render


@pytest.fixture(scope='module')
def symbol():
    return qr.encode_text('Hello, world!', qr.LOW)


def test_matrix_border_is_white(symbol):
    matrix = qr_render.to_matrix(symbol, 2)
    assert matrix.shape == (25, 25)
    assert not matrix[:2].any()
    assert not matrix[:, -2:].any()
    assert np.array_equal(matrix[2:-2, 2:-2], symbol.modules)


def test_bits(symbol):
    bits = qr_render.to_bits(symbol)
    assert len(bits) == 21 * 21
    assert set(bits) == {'0', '1'}
    assert bits[0] == '1'
    assert len(qr_render.to_bits(symbol, 4)) == 29 * 29


def test_text(symbol):
    lines = qr_render.to_text(symbol, border=1, dark='#', light='.').split(
        '\n')
    assert len(lines) == 23
    assert lines[0] == '.' * 23
    assert lines[1].startswith('.#######.')


def test_grayscale_array(symbol):
    image = qr_render.to_array(symbol, border=4, scale=2)
    assert image.shape == (58, 58)
    assert image.dtype == np.uint8
    assert set(np.unique(image).tolist()) == {0, 255}
    assert image[0, 0] == 255
    assert image[8, 8] == 0
    assert image[9, 9] == 0


def test_color_array(symbol):
    image = qr_render.to_array(symbol, border=1, foreground=(255, 0, 0),
                               background=(255, 255, 255))
    assert image.shape == (23, 23, 3)
    assert image[1, 1].tolist() == [255, 0, 0]
    assert image[0, 0].tolist() == [255, 255, 255]


def test_png(symbol, tmp_path):
    png = qr_render.to_png(symbol, scale=3)
    assert png.startswith(b'\x89PNG')
    path = tmp_path / 'hello.png'
    qr_render.save(symbol, path, border=2, scale=3)
    image = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
    assert image.shape == (75, 75)


@pytest.mark.parametrize('kwargs', [{'border': -1}, {'scale': 0}])
def test_rejects_bad_geometry(symbol, kwargs):
    with pytest.raises(ValueError):
        qr_render.to_array(symbol, **kwargs)
