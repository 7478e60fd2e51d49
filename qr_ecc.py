from functools import lru_cache

# x^8 + x^4 + x^3 + x^2 + 1
PRIMITIVE = 0x11D
ROOT = 0x02


def gf_multiply(x, y):
    # Russian peasant multiplication, MSB of y first
    z = 0
    for i in range(7, -1, -1):
        z = (z << 1) ^ ((z >> 7) * PRIMITIVE)
        z ^= ((y >> i) & 1) * x
    return z


@lru_cache(maxsize=None)
def generator(degree):
    """Coefficients of prod(x - ROOT^i for i in range(degree)), highest
    power first, without the implicit leading 1."""
    if not 1 <= degree <= 255:
        raise ValueError('Degree out of range')
    result = [0] * (degree - 1) + [1]
    root = 1
    for _ in range(degree):
        for j in range(degree):
            result[j] = gf_multiply(result[j], root)
            if j + 1 < degree:
                result[j] ^= result[j + 1]
        root = gf_multiply(root, ROOT)
    return tuple(result)


def remainder(data, divisor):
    result = [0] * len(divisor)
    for b in data:
        factor = b ^ result.pop(0)
        result.append(0)
        for i, coef in enumerate(divisor):
            result[i] ^= gf_multiply(coef, factor)
    return result


def reed_solomon(data, degree):
    return remainder(data, generator(degree))
