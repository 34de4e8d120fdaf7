"""
Tests for linkage.units: model <-> SI scaling and the metric/imperial
display tables.

Run with:
    pytest -q tests/test_units.py
"""

import sys

import pytest

sys.path.append("src")

from linkage.units import UnitScale


class TestModelUnits:
    def test_default_unit_is_a_centimetre(self):
        units = UnitScale()
        assert units.m_u == 0.01
        assert units.from_m(1.0) == pytest.approx(100.0)
        assert units.to_m(250.0) == pytest.approx(2.5)

    def test_forces_scale_like_lengths(self):
        units = UnitScale()
        assert units.from_N(20.0) == pytest.approx(2000.0)
        assert units.to_N(units.from_N(3.5)) == pytest.approx(3.5)

    def test_moments_and_energies_scale_quadratically(self):
        units = UnitScale(0.01)
        assert units.to_Nm(1e4) == pytest.approx(1.0)
        assert units.to_J(1e4) == pytest.approx(1.0)
        assert units.from_Nm(1.0) == pytest.approx(1e4)
        assert units.from_J(units.to_J(3.0)) == pytest.approx(3.0)

    def test_spring_rate_has_no_length_scale(self):
        units = UnitScale(0.001)
        assert units.from_N_m(50.0) == 50.0
        assert units.to_N_m(50.0) == 50.0

    def test_invalid_system(self):
        with pytest.raises(ValueError):
            UnitScale(system="cubits")


class TestDisplay:
    def test_preferred_units(self):
        assert UnitScale().get_preferred_unit("length") == "mm"
        assert UnitScale(system="imperial").get_preferred_unit("length") == "in"
        assert UnitScale(system="imperial").get_preferred_unit("force") == "lb"

    def test_convert_to_display(self):
        value, symbol = UnitScale().convert_to_display(0.25, "length")
        assert symbol == "mm"
        assert value == pytest.approx(250.0)

        value, symbol = UnitScale(system="imperial").convert_to_display(4.44822, "force")
        assert symbol == "lb"
        assert value == pytest.approx(1.0)

    def test_convert_from_display(self):
        assert UnitScale(system="imperial").convert_from_display(10.0, "length") == pytest.approx(0.254)

    def test_format_value_uses_precision(self):
        assert UnitScale().format_value(0.0123, "length") == "12.3 mm"
        assert UnitScale().format_value(12.5, "force") == "12.50 N"

    def test_parse_value(self):
        units = UnitScale()
        assert units.parse_value("5 cm", "length") == pytest.approx(0.05)
        assert units.parse_value("12", "length") == pytest.approx(0.012)
        assert units.parse_value("2 N·m", "moment") == pytest.approx(2.0)
        assert units.parse_value("3 kN", "force") == pytest.approx(3000.0)

    def test_parse_value_rejects_garbage(self):
        with pytest.raises(ValueError):
            UnitScale().parse_value("abc mm", "length")

    def test_unknown_unit_type(self):
        with pytest.raises(KeyError):
            UnitScale().convert_to_display(1.0, "luminosity")

    def test_conversion_info(self):
        info = UnitScale(system="imperial").conversion_info()
        assert info["length"] == {"symbol": "in", "factor": 0.0254, "precision": 2}
        assert set(info) >= {"force", "moment", "energy", "spring_rate", "mass"}
