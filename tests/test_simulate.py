"""
Tests for the headless simulation driver in linkage.simulate.

Run with:
    pytest -q tests/test_simulate.py
"""

import math
import sys

import numpy as np
import pytest

sys.path.append("src")

from linkage import Model, UnitScale, simulate


def crank_model(**extra):
    data = {
        "id": "crank",
        "nodes": [{"id": "A0", "base": True}, {"id": "A1", "x": 100, "y": 0}],
        "constraints": [
            {
                "id": "a",
                "p1": "A0",
                "p2": "A1",
                "len": {"type": "const"},
                "ori": {"type": "drive", "func": "linear", "Dt": 1, "Dw": math.pi / 2},
            }
        ],
    }
    data.update(extra)
    return Model.from_dict(data).init()


# --------------------------------------------------------------------------- #
# simulate()
# --------------------------------------------------------------------------- #
class TestSimulate:
    def test_default_runs_one_second(self):
        results = simulate(crank_model())
        assert results.total_frames == 60
        assert results.final_time == pytest.approx(1.0)
        assert results.valid

    def test_ticks_and_duration(self):
        assert simulate(crank_model(), ticks=7).total_frames == 7
        assert simulate(crank_model(), duration=0.5, dt=0.01).total_frames == 50

    def test_negative_ticks(self):
        with pytest.raises(ValueError):
            simulate(crank_model(), ticks=-1)

    def test_driven_crank_ends_at_quarter_turn(self):
        results = simulate(crank_model(), ticks=60)
        x, y = results.get_final_frame().positions["A1"]
        assert x == pytest.approx(0.0, abs=1e-3)
        assert y == pytest.approx(100.0, abs=1e-3)

    def test_stop_when_idle(self):
        # the drive finishes after one second and nothing else moves
        results = simulate(crank_model(), duration=3.0, stop_when_idle=True)
        assert results.final_time < 3.0
        assert results.total_frames < 180

    def test_invalid_model_records_nothing(self):
        model = Model.from_dict({"nodes": [{"id": "A"}], "constraints": [{"id": "a", "p1": "A", "p2": "B"}]}).init()
        results = simulate(model, ticks=10)
        assert results.total_frames == 0
        assert not results.valid
        assert results.messages[0]["mid"] == "E_CSTR_NODE_NOT_EXISTS"


# --------------------------------------------------------------------------- #
# Results
# --------------------------------------------------------------------------- #
class TestResults:
    def test_arrays(self):
        results = simulate(crank_model(), ticks=30)
        assert results.times().shape == (30,)
        assert results.trajectory("A1").shape == (30, 2)
        assert results.energy_series().shape == (30,)
        assert results.iterations().shape == (30, 2)
        radii = np.hypot(*results.trajectory("A1").T)
        assert np.allclose(radii, 100.0, atol=1e-3)

    def test_empty_results(self):
        results = simulate(crank_model(), ticks=0)
        assert results.get_final_frame() is None
        assert results.get_frame_at_time(1.0) is None
        assert results.trajectory("A1").shape == (0, 2)
        assert results.iterations().shape == (0, 2)

    def test_frame_at_time(self):
        results = simulate(crank_model(), ticks=60)
        frame = results.get_frame_at_time(0.5)
        assert frame.time == pytest.approx(0.5)

    def test_frames_record_constraint_force(self):
        model = Model.from_dict(
            {
                "gravity": True,
                "nodes": [{"id": "A0", "base": True}, {"id": "A1", "x": 0, "y": -100}],
                "constraints": [{"id": "a", "p1": "A0", "p2": "A1", "len": {"type": "const"}, "ori": {"type": "const"}}],
            }
        ).init()
        frame = simulate(model, ticks=5).get_final_frame()
        assert set(frame.forces) == {"a"}
        assert frame.velocities["A1"] == pytest.approx((0.0, 0.0), abs=model.config.vel_tol)

    def test_as_dict_in_si_units(self):
        results = simulate(crank_model(), ticks=60)
        data = results.as_dict(UnitScale(0.01, "metric"))
        assert data["unit_system"] == "metric"
        assert data["total_frames"] == 60
        x, y = data["frames"][-1]["positions"]["A1"]
        assert y == pytest.approx(1.0, abs=1e-5)
        assert set(data["frames"][0]) >= {"time", "positions", "velocities", "accelerations", "forces", "moments", "energy"}

    def test_as_dict_in_model_units(self):
        data = simulate(crank_model(), ticks=60).as_dict()
        assert data["unit_system"] is None
        assert data["frames"][-1]["positions"]["A1"][1] == pytest.approx(100.0, abs=1e-3)
