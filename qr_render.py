"""Presentation helpers. Everything here reads the symbol through
``module(x, y)`` only, which is False outside the symbol, so borders come
for free."""
import cv2
import numpy as np


def _check(border, scale=1):
    if border < 0:
        raise ValueError('Border must be non-negative')
    if scale < 1:
        raise ValueError('Scale must be positive')


def to_matrix(qr, border=0):
    _check(border)
    full = qr.size + border * 2
    return np.array([[qr.module(x - border, y - border) for x in range(full)]
                     for y in range(full)], dtype=bool)


def to_array(qr, border=4, scale=1, foreground=0, background=255):
    _check(border, scale)
    matrix = to_matrix(qr, border)
    if isinstance(foreground, tuple) or isinstance(background, tuple):
        # BGR
        fg = np.array(foreground if isinstance(foreground, tuple)
                      else (foreground,) * 3, dtype=np.uint8)
        bg = np.array(background if isinstance(background, tuple)
                      else (background,) * 3, dtype=np.uint8)
        output = np.where(matrix[:, :, None], fg, bg).astype(np.uint8)
    else:
        output = np.where(matrix, foreground, background).astype(np.uint8)
    if scale > 1:
        side = output.shape[0] * scale
        output = cv2.resize(output, (side, side),
                            interpolation=cv2.INTER_NEAREST)
    return output


def to_png(qr, border=4, scale=8, foreground=0, background=255):
    ok, buf = cv2.imencode('.png', to_array(qr, border, scale, foreground,
                                            background))
    if not ok:
        raise ValueError('PNG encoding failed')
    return buf.tobytes()


def save(qr, path, border=4, scale=8, foreground=0, background=255):
    if not cv2.imwrite(str(path), to_array(qr, border, scale, foreground,
                                           background)):
        raise ValueError('Could not write {}'.format(path))


def to_bits(qr, border=0):
    return ''.join('1' if bit else '0'
                   for row in to_matrix(qr, border).tolist() for bit in row)


def to_text(qr, border=1, dark='██', light='  '):
    return '\n'.join(''.join(dark if bit else light for bit in row)
                     for row in to_matrix(qr, border).tolist())
