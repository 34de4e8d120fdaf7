"""Headless simulation: tick a model and record frames."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .logging_utils import get_logger
from .model import Model
from .units import UnitScale

logger = get_logger(__name__)


@dataclass
class Frame:
    """State of a mechanism after one tick, in model units."""

    time: float
    positions: Dict[str, Tuple[float, float]]  # node_id -> (x, y)
    velocities: Dict[str, Tuple[float, float]]
    accelerations: Dict[str, Tuple[float, float]]
    forces: Dict[str, float]  # constraint_id -> axial force
    moments: Dict[str, float]  # constraint_id -> moment
    energy: float
    valid: bool = True
    itrpos: int = 0
    itrvel: int = 0

    @classmethod
    def capture(cls, model: Model) -> "Frame":
        constraints = [c for c in model.constraints if c.initialized]
        return cls(
            time=model.t,
            positions={n.id: n.pos for n in model.nodes},
            velocities={n.id: n.vel for n in model.nodes},
            accelerations={n.id: n.acc for n in model.nodes},
            forces={c.id: c.force for c in constraints},
            moments={c.id: c.moment for c in constraints},
            energy=model.energy,
            valid=model.valid,
            itrpos=model.itrpos,
            itrvel=model.itrvel,
        )

    def as_dict(self, units: Optional[UnitScale] = None) -> Dict[str, Any]:
        """Plain dict; converted to SI when ``units`` is given."""
        length = units.to_m if units else float
        force = units.to_N if units else float
        moment = units.to_Nm if units else float
        energy = units.to_J if units else float

        def vec(values: Dict[str, Tuple[float, float]]) -> Dict[str, List[float]]:
            return {k: [length(v[0]), length(v[1])] for k, v in values.items()}

        return {
            "time": self.time,
            "positions": vec(self.positions),
            "velocities": vec(self.velocities),
            "accelerations": vec(self.accelerations),
            "forces": {k: force(v) for k, v in self.forces.items()},
            "moments": {k: moment(v) for k, v in self.moments.items()},
            "energy": energy(self.energy),
            "valid": self.valid,
            "itrpos": self.itrpos,
            "itrvel": self.itrvel,
        }


@dataclass
class Results:
    """Complete headless simulation results."""

    frames: List[Frame] = field(default_factory=list)
    final_time: float = 0.0
    total_frames: int = 0
    valid: bool = True
    messages: List[Dict[str, Any]] = field(default_factory=list)

    def get_frame_at_time(self, time: float) -> Optional[Frame]:
        """Get the frame closest to the specified time."""
        if not self.frames:
            return None
        return min(self.frames, key=lambda f: abs(f.time - time))

    def get_final_frame(self) -> Optional[Frame]:
        return self.frames[-1] if self.frames else None

    def times(self) -> np.ndarray:
        return np.array([f.time for f in self.frames])

    def trajectory(self, node_id: str) -> np.ndarray:
        """Positions of one node as an ``(n, 2)`` array."""
        if not self.frames:
            return np.zeros((0, 2))
        return np.array([f.positions[node_id] for f in self.frames], dtype=float)

    def energy_series(self) -> np.ndarray:
        return np.array([f.energy for f in self.frames], dtype=float)

    def iterations(self) -> np.ndarray:
        """Position and velocity iteration counts per frame, shape ``(n, 2)``."""
        return np.array([(f.itrpos, f.itrvel) for f in self.frames], dtype=int).reshape(-1, 2)

    def as_dict(self, units: Optional[UnitScale] = None) -> Dict[str, Any]:
        return {
            "frames": [f.as_dict(units) for f in self.frames],
            "final_time": self.final_time,
            "total_frames": self.total_frames,
            "valid": self.valid,
            "messages": self.messages,
            "unit_system": units.system if units else None,
        }


def simulate(
    model: Model,
    duration: Optional[float] = None,
    ticks: Optional[int] = None,
    dt: Optional[float] = None,
    stop_when_idle: bool = False,
) -> Results:
    """Tick an initialized model and record a frame per tick.

    Runs ``ticks`` steps, or as many as fit into ``duration``; the default is
    one second of simulated time. Stops early when the model turns invalid,
    and when it comes to rest if ``stop_when_idle`` is set.
    """
    dt = dt or model.config.dt
    if ticks is None:
        ticks = int(round((duration if duration is not None else 1.0) / dt))
    if ticks < 0:
        raise ValueError("ticks must not be negative")

    results = Results()
    for _ in range(ticks):
        if not model.valid:
            break
        model.tick(dt)
        results.frames.append(Frame.capture(model))
        if stop_when_idle and not model.is_active:
            logger.debug("Model came to rest at t=%.4fs", model.t)
            break

    results.final_time = model.t
    results.total_frames = len(results.frames)
    results.valid = model.valid
    results.messages = [m.as_dict() for m in model.messages]
    if not model.valid:
        logger.warning("Simulation stopped with invalid model at t=%.4fs: %s", model.t, model.msg)
    return results
