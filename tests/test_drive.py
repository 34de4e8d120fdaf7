"""
Tests for linkage.drive motion profiles.

Run with:
    pytest -q tests/test_drive.py
"""

import math
import sys

import pytest

sys.path.append("src")

from linkage.drive import SHAPES, Drive


class TestShapes:
    """Normalized shapes start at 0 and end at 1."""

    @pytest.mark.parametrize("name", ["linear", "quadratic", "harmonic", "sinoid", "poly5", "inQuad", "outCubic", "inOutQuint"])
    def test_endpoints(self, name):
        shape = SHAPES[name]
        assert shape.f(0.0) == pytest.approx(0.0, abs=1e-12)
        assert shape.f(1.0) == pytest.approx(1.0, abs=1e-12)

    def test_harmonic_slope_matches_difference_quotient(self):
        shape = SHAPES["harmonic"]
        h = 1e-6
        q = 0.3
        assert shape.fd(q) == pytest.approx((shape.f(q + h) - shape.f(q - h)) / (2 * h), rel=1e-6)

    def test_in_out_curvature_flips_in_second_half(self):
        shape = SHAPES["inOutQuad"]
        assert shape.fdd(0.25) > 0
        assert shape.fdd(0.75) < 0

    def test_names_include_easing_family(self):
        names = Drive.names()
        assert "linear" in names
        assert "inOutQuart" in names


class TestDrive:
    def test_linear_value_rate_and_clamping(self):
        drive = Drive("linear", t0=1.0, Dt=2.0, Dz=4.0, z0=1.0)
        assert drive.value(0.0) == 1.0
        assert drive.value(2.0) == pytest.approx(3.0)
        assert drive.value(10.0) == pytest.approx(5.0)
        assert drive.rate(2.0) == pytest.approx(2.0)
        # rate vanishes outside the running window
        assert drive.rate(0.5) == 0.0
        assert drive.rate(3.0) == 0.0
        assert drive.rate_of_change(2.0) == 0.0

    def test_unknown_function_falls_back_to_linear(self):
        drive = Drive("no-such-function", Dt=1.0, Dz=1.0)
        assert drive.value(0.5) == pytest.approx(0.5)

    def test_bounce_goes_there_and_back(self):
        drive = Drive("linear", Dt=1.0, Dz=2.0, bounce=True)
        assert drive.duration == 2.0
        assert drive.value(1.0) == pytest.approx(2.0)
        assert drive.value(2.0) == pytest.approx(0.0)
        assert drive.rate(0.5) > 0
        assert drive.rate(1.5) < 0

    def test_repeat_tiles_the_shape(self):
        drive = Drive("linear", Dt=1.0, Dz=1.0, repeat=3)
        assert drive.duration == 3.0
        assert drive.value(0.5) == pytest.approx(0.5)
        assert drive.value(1.5) == pytest.approx(0.5)

    def test_static_ignores_bounce_and_has_no_rate(self):
        drive = Drive("static", Dt=1.0, Dz=math.pi, bounce=True, repeat=2)
        assert drive.duration == 1.0
        assert drive.value(0.5) == pytest.approx(math.pi / 2)
        assert drive.rate(0.5) == 0.0

    def test_is_active_until_half_a_step_after_the_end(self):
        drive = Drive("linear", t0=0.0, Dt=1.0)
        assert drive.is_active(1.0, 0.1)
        assert drive.is_active(1.04, 0.1)
        assert not drive.is_active(1.06, 0.1)

    def test_non_positive_duration_raises(self):
        with pytest.raises(ValueError):
            Drive("linear", Dt=0.0)

    def test_repeat_below_one_raises(self):
        with pytest.raises(ValueError):
            Drive("linear", Dt=1.0, repeat=0)


# --------------------------------------------------------------------------- #
# Parametric shapes
# --------------------------------------------------------------------------- #
SEGMENTS = [
    {"func": "linear", "dt": 1, "dz": 1},
    {"func": "const", "dt": 1},
    {"func": "linear", "dt": 2, "dz": -1},
]


class TestSequence:
    def test_segments_are_chained(self):
        drive = Drive("seq", Dt=4.0, Dz=2.0, args=SEGMENTS)
        assert drive.value(0.0) == pytest.approx(0.0)
        assert drive.value(1.0) == pytest.approx(2.0)
        assert drive.value(2.0) == pytest.approx(2.0)
        assert drive.value(3.0) == pytest.approx(1.0)
        assert drive.value(4.0) == pytest.approx(0.0)

    def test_rate_follows_each_segment(self):
        drive = Drive("seq", Dt=4.0, Dz=2.0, args=SEGMENTS)
        assert drive.rate(0.5) == pytest.approx(2.0)
        assert drive.rate(1.5) == pytest.approx(0.0)
        assert drive.rate(3.0) == pytest.approx(-1.0)

    @pytest.mark.parametrize(
        "args",
        [None, [], [{"func": "warp", "dt": 1, "dz": 1}], [{"dt": 0, "dz": 1}], [{"dt": 1}], ["linear"]],
    )
    def test_bad_segments_raise(self, args):
        with pytest.raises(ValueError):
            Drive("seq", Dt=1.0, args=args)


class TestPowerShapes:
    def test_order_selects_the_power(self):
        drive = Drive("inPot", Dt=1.0, Dz=1.0, args=3)
        assert drive.value(0.3) == pytest.approx(SHAPES["inCubic"].f(0.3))
        out = Drive("inOutPot", Dt=1.0, Dz=1.0, args=2)
        assert out.value(0.75) == pytest.approx(SHAPES["inOutQuad"].f(0.75))

    @pytest.mark.parametrize("args", [None, 0, 2.5, True])
    def test_invalid_order_raises(self, args):
        with pytest.raises(ValueError):
            Drive("outPot", Dt=1.0, args=args)

    def test_names_include_parametric_shapes(self):
        names = Drive.names()
        assert {"seq", "inPot", "outPot", "inOutPot"} <= set(names)
