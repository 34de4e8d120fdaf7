"""
Tests for linkage.config.

Run with:
    pytest -q tests/test_config.py
"""

import sys

import pytest

sys.path.append("src")

from linkage.config import NumericalConfig, SolverConfig


def test_defaults():
    config = SolverConfig()
    assert config.tolerance == "medium"
    assert config.len_tol == 1e-3
    assert config.dt == pytest.approx(1 / 60)
    assert config.gravity == (0.0, -10.0)
    assert config.asm_itr_max == NumericalConfig.ASM_ITR_MAX
    assert config.warm_start


@pytest.mark.parametrize("profile,expected", [("low", 1e-5), ("medium", 1e-3), ("high", 0.1)])
def test_tolerance_profiles(profile, expected):
    assert SolverConfig(tolerance=profile).len_tol == expected


@pytest.mark.parametrize(
    "kwargs",
    [{"tolerance": "extreme"}, {"asm_itr_max": 0}, {"dt": 0.0}, {"dt": -0.1}, {"m_u": 0.0}],
)
def test_invalid_values(kwargs):
    with pytest.raises(ValueError):
        SolverConfig(**kwargs)


def test_gravity_is_normalized_to_floats():
    assert SolverConfig(gravity=[0, -9]).gravity == (0.0, -9.0)


def test_replace_returns_new_config():
    config = SolverConfig()
    other = config.replace(dt=0.01, warm_start=False)
    assert other.dt == 0.01 and not other.warm_start
    assert config.dt == pytest.approx(1 / 60) and config.warm_start


def test_from_mapping_reads_flask_style_keys():
    config = SolverConfig.from_mapping(
        {
            "SOLVER_TOLERANCE": "low",
            "SOLVER_ASM_ITR_MAX": 64,
            "dt": 0.005,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "DEBUG": True,
        }
    )
    assert config.tolerance == "low"
    assert config.asm_itr_max == 64
    assert config.dt == 0.005


def test_from_mapping_validates():
    with pytest.raises(ValueError):
        SolverConfig.from_mapping({"SOLVER_TOLERANCE": "nope"})
