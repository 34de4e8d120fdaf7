"""
Tests for linkage.node point masses.

Run with:
    pytest -q tests/test_node.py
"""

import math
import sys

import pytest

sys.path.append("src")

from linkage import Model, Node


# --------------------------------------------------------------------------- #
# Construction
# --------------------------------------------------------------------------- #
class TestNodeConstruction:
    def test_defaults_to_unit_mass(self):
        node = Node("A", 1, 2)
        assert node.im == 1.0
        assert node.mass == 1.0
        assert node.dof == 2
        assert (node.x0, node.y0) == (1.0, 2.0)

    def test_base_node_has_zero_inverse_mass(self):
        node = Node.from_dict({"id": "A0", "x": 0, "y": 0, "base": True})
        assert node.is_base
        assert node.mass == math.inf
        assert node.dof == 0

    def test_explicit_mass(self):
        node = Node("A", m=4.0)
        assert node.im == pytest.approx(0.25)

    def test_as_dict_reports_initial_position(self):
        node = Node.from_dict({"id": "A", "x": 10, "y": 20, "m": 2, "idloc": "left"})
        node.x = 99.0
        assert node.as_dict() == {"id": "A", "x": 10.0, "y": 20.0, "m": 2, "idloc": "left"}


# --------------------------------------------------------------------------- #
# Time step
# --------------------------------------------------------------------------- #
class TestNodeStep:
    def test_predict_uses_weighted_increment(self):
        """Position advances by (xt + 1.5*dxt)*dt."""
        node = Node("A", 0, 0)
        node.xt = 2.0
        node.clear()
        node.Qx = 6.0
        node.predict(0.5)
        assert node.dxt == pytest.approx(3.0)
        assert node.x == pytest.approx((2.0 + 1.5 * 3.0) * 0.5)

    def test_base_node_never_moves(self):
        node = Node("A", 1, 1, base=True)
        node.clear()
        node.apply_gravity(0, -1000)
        node.predict(0.1)
        assert node.pos == (1.0, 1.0)
        assert node.force == (0.0, 0.0)

    def test_finalize_commits_increment_and_derives_acceleration(self):
        node = Node("A")
        node.dxt, node.dyt = 0.5, -0.25
        node.finalize(0.1, 0.01)
        assert node.vel == (0.5, -0.25)
        assert node.acc == pytest.approx((5.0, -2.5))

    def test_sleeping_after_two_calm_steps(self):
        node = Node("A")
        node.finalize(0.1, 0.01)
        assert not node.is_sleeping
        node.finalize(0.1, 0.01)
        assert node.is_sleeping
        node.dxt = 1.0
        node.finalize(0.1, 0.01)
        assert not node.is_sleeping

    def test_reset_and_stop(self):
        node = Node("A", 3, 4)
        node.x, node.y, node.xt, node.ytt = 5.0, 6.0, 1.0, 2.0
        node.stop()
        assert node.vel == (0.0, 0.0) and node.acc == (0.0, 0.0)
        node.reset()
        assert node.pos == (3.0, 4.0)

    def test_energy(self):
        node = Node("A", 0, 0, m=2.0)
        node.xt = 3.0
        node.y = -1.0
        assert node.energy() == pytest.approx(9.0)
        # potential drops when falling along gravity
        assert node.energy((0.0, -10.0)) == pytest.approx(9.0 - 20.0)
        assert Node("B", base=True).energy((0.0, -10.0)) == 0.0

    def test_analysis_magnitudes(self):
        node = Node("A")
        node.xt, node.yt = 3.0, 4.0
        node.Qx, node.Qy = 6.0, 8.0
        assert node.vel_abs == pytest.approx(5.0)
        assert node.force_abs == pytest.approx(10.0)


# --------------------------------------------------------------------------- #
# Validation
# --------------------------------------------------------------------------- #
class TestNodeValidation:
    def test_missing_id(self):
        model = Model(nodes=[Node(None)]).init()
        assert not model.valid
        assert model.msg.mid == "E_ELEM_ID_MISSING"

    def test_ambiguous_id(self):
        model = Model(nodes=[Node("A"), Node("A", 1, 1)]).init()
        assert not model.valid
        assert model.msg.mid == "E_ELEM_ID_AMBIGIOUS"

    def test_mass_too_small(self):
        model = Model(nodes=[Node("A", m=0.0)]).init()
        assert not model.valid
        assert model.msg.mid == "E_NODE_MASS_TOO_SMALL"
        assert "too small" in model.msg.text
