"""
Bit-level float32 <-> IEEE 754 binary16 conversion.

Some inference engines take or return 16-bit tensors. The decoder itself always
works on float32, so the codec is applied only at the two tensor boundaries
(input blob going in, raw output coming back).

binary16 layout: 1 sign bit, 5 exponent bits (bias 15), 10 mantissa bits.
Encoding rounds to nearest, ties to even, which makes it bit-identical to
`numpy.float16` casting. Values too large for binary16 become +/-inf, values
below half the smallest subnormal become signed zero, and NaN collapses to the
quiet pattern 0x7E00 (payload is not kept).
"""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np

ArrayLike = Union[np.ndarray, Sequence[float]]

_F16_INF = 0x7C00
_F16_QNAN = 0x7E00


def encode_array(values: ArrayLike) -> np.ndarray:
    """
    Encode float values to binary16 bit patterns (uint16), element-wise.

    The output has the same shape as the input.
    """

    with np.errstate(over="ignore"):
        f32 = np.array(values, dtype=np.float32)
    bits = f32.view(np.uint32)

    sign = ((bits >> 16) & 0x8000).astype(np.uint32)
    exp32 = ((bits >> 23) & 0xFF).astype(np.int32)
    man = (bits & 0x007FFFFF).astype(np.uint32)
    exp16 = exp32 - 127 + 15

    # Normal range: drop 13 mantissa bits and round; a carry out of the
    # mantissa bumps the exponent, up to and including infinity.
    normal = ((np.clip(exp16, 0, 0x1F).astype(np.uint32) << 10) | (man >> 13)).astype(np.uint32)
    rem = man & 0x1FFF
    round_up = (rem > 0x1000) | ((rem == 0x1000) & ((normal & 1) == 1))
    normal = normal + round_up.astype(np.uint32)

    # Subnormal range: restore the implicit leading bit and shift it down.
    shift = np.clip(14 - exp16, 0, 31).astype(np.uint32)
    full = man | 0x00800000
    sub = full >> shift
    sub_rem = full & ((np.uint32(1) << shift) - np.uint32(1))
    halfway = np.uint32(1) << np.clip(shift.astype(np.int64) - 1, 0, 31).astype(np.uint32)
    sub_round = (sub_rem > halfway) | ((sub_rem == halfway) & ((sub & 1) == 1))
    sub = sub + sub_round.astype(np.uint32)

    out = np.where(exp16 >= 1, normal, sub)
    out = np.where(exp16 < -10, np.uint32(0), out)
    out = np.where(exp16 >= 0x1F, np.uint32(_F16_INF), out)
    is_special = exp32 == 0xFF
    out = np.where(is_special & (man == 0), np.uint32(_F16_INF), out)
    out = np.where(is_special & (man != 0), np.uint32(_F16_QNAN), out)

    return (out | sign).astype(np.uint16)


def decode_array(bits: ArrayLike) -> np.ndarray:
    """
    Decode binary16 bit patterns (uint16) to float32, element-wise.
    """

    h = np.array(bits).astype(np.uint32)
    if np.any(h > 0xFFFF):
        raise ValueError("binary16 bit patterns must fit in 16 bits")

    sign = (h & 0x8000) << 16
    exp = ((h >> 10) & 0x1F).astype(np.int32)
    man = h & 0x03FF

    normal = sign | (np.clip(exp - 15 + 127, 0, 0xFF).astype(np.uint32) << 23) | (man << 13)
    special = sign | np.uint32(0x7F800000) | (man << 13)
    # Subnormal magnitudes are man * 2**-24, exactly representable in float32.
    sub = np.ldexp(man.astype(np.float32), -24).astype(np.float32).view(np.uint32) | sign

    out = np.where(exp == 0, sub, normal)
    out = np.where(exp == 0x1F, special, out)
    return out.astype(np.uint32).view(np.float32)


def encode16(value: float) -> int:
    """Encode one float to its binary16 bit pattern."""
    return int(encode_array(np.array([value]))[0])


def decode16(bits: int) -> float:
    """Decode one binary16 bit pattern to a float."""
    return float(decode_array(np.array([bits], dtype=np.uint32))[0])


def to_float16_tensor(tensor: ArrayLike) -> np.ndarray:
    """
    Encode a float32 tensor for a 16-bit engine input.

    Returns a `numpy.float16` view of the encoded bits so it can be fed directly
    to runtimes that check the dtype.
    """

    return encode_array(tensor).view(np.float16)


def from_float16_tensor(tensor: ArrayLike) -> np.ndarray:
    """
    Decode a 16-bit engine output to float32.

    Accepts raw uint16 bit patterns or a `numpy.float16` array.
    """

    arr = np.asarray(tensor)
    if arr.dtype == np.float16:
        arr = np.ascontiguousarray(arr).view(np.uint16)
    elif arr.dtype != np.uint16:
        raise TypeError(f"Expected float16 or uint16 tensor, got dtype {arr.dtype}")
    return decode_array(arr)
