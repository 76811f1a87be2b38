import math

import numpy as np
import pytest

from procamgraycode.errors import ConfigurationError
from procamgraycode.graycode import (
    AXIS_COLUMNS,
    AXIS_ROWS,
    PatternGenerator,
    binary_to_gray,
    expected_pattern_count,
    generate,
    gray_to_binary,
    num_bits,
)


@pytest.mark.parametrize("k", [1, 2, 5, 11])
def test_gray_round_trip(k):
    for v in range(2 ** k):
        assert gray_to_binary(binary_to_gray(v)) == v


def test_gray_round_trip_vectorized():
    v = np.arange(4096, dtype=np.int64)
    np.testing.assert_array_equal(gray_to_binary(binary_to_gray(v)), v)


def test_neighbouring_codes_differ_in_one_bit():
    for v in range(1023):
        diff = binary_to_gray(v) ^ binary_to_gray(v + 1)
        assert bin(diff).count("1") == 1


@pytest.mark.parametrize(
    "resolution, bits", [(1, 0), (2, 1), (3, 2), (4, 2), (5, 3), (256, 8), (1280, 11)],
)
def test_num_bits(resolution, bits):
    assert num_bits(resolution) == bits


@pytest.mark.parametrize("wp, hp", [(1, 1), (2, 3), (4, 4), (5, 7), (256, 160), (640, 480)])
def test_pattern_count(wp, hp):
    patterns = generate(wp, hp, 5, 40)
    expected = 2 * math.ceil(math.log2(wp)) + 2 * math.ceil(math.log2(hp)) + 2
    assert len(patterns) == expected == expected_pattern_count(wp, hp)


def test_images_are_binary_and_paired():
    patterns = generate(12, 9, 5, 40)
    for img in patterns:
        assert img.shape == (9, 12)
        assert img.dtype == np.uint8
        assert set(np.unique(img)) <= {0, 255}
    for axis in (AXIS_COLUMNS, AXIS_ROWS):
        for pos, neg in patterns.bit_plane_indices(axis):
            np.testing.assert_array_equal(patterns[neg], 255 - patterns[pos])


def test_shadow_pair_is_black_then_white():
    patterns = generate(8, 8, 5, 40)
    assert patterns.black_index == len(patterns) - 2
    assert patterns.white_index == len(patterns) - 1
    assert not patterns[patterns.black_index].any()
    assert (patterns[patterns.white_index] == 255).all()


def test_stripes_encode_column_and_row():
    wp, hp = 10, 6
    patterns = generate(wp, hp, 5, 40)

    for c in range(wp):
        gray = 0
        for pos, _ in patterns.bit_plane_indices(AXIS_COLUMNS):
            column = patterns[pos][:, c]
            assert (column == column[0]).all()
            gray = (gray << 1) | int(column[0] > 0)
        assert gray_to_binary(gray) == c

    for r in range(hp):
        gray = 0
        for pos, _ in patterns.bit_plane_indices(AXIS_ROWS):
            row = patterns[pos][r, :]
            assert (row == row[0]).all()
            gray = (gray << 1) | int(row[0] > 0)
        assert gray_to_binary(gray) == r


def test_generation_is_deterministic():
    a = generate(33, 17, 5, 40)
    b = generate(33, 17, 5, 40)
    assert len(a) == len(b)
    for x, y in zip(a, b):
        np.testing.assert_array_equal(x, y)


def test_thresholds_are_carried_not_used():
    a = generate(16, 16, 5, 40)
    b = generate(16, 16, 50, 100)
    assert (b.white_threshold, b.black_threshold) == (50, 100)
    for x, y in zip(a, b):
        np.testing.assert_array_equal(x, y)


def test_patterns_are_read_only():
    patterns = generate(4, 4, 5, 40)
    with pytest.raises(ValueError):
        patterns[0][0, 0] = 1


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(pattern_width=0, pattern_height=4),
        dict(pattern_width=4, pattern_height=-1),
        dict(pattern_width=4, pattern_height=4, white_threshold=0),
        dict(pattern_width=4, pattern_height=4, black_threshold=-3),
        dict(pattern_width=300, pattern_height=4, projector_width=256),
        dict(pattern_width=4, pattern_height=300, projector_height=256),
    ],
)
def test_invalid_generator_settings(kwargs):
    params = dict(white_threshold=5, black_threshold=40)
    params.update(kwargs)
    with pytest.raises(ConfigurationError):
        PatternGenerator(
            params.pop("pattern_width"), params.pop("pattern_height"),
            params.pop("white_threshold"), params.pop("black_threshold"),
            **params,
        )


def test_describe():
    patterns = generate(4, 2, 5, 40)
    # 2 column bits, 1 row bit
    assert patterns.describe(0) == "X bit 1 (pos)"
    assert patterns.describe(3) == "X bit 0 (neg)"
    assert patterns.describe(4) == "Y bit 0 (pos)"
    assert patterns.describe(6) == "black"
    assert patterns.describe(7) == "white"
    assert patterns.preview_index == 5
