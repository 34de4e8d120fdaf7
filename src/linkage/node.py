from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from .messages import Message

if TYPE_CHECKING:
    from .model import Model
    from .render import Renderer


@dataclass(eq=False)
class Node:
    """A point mass.

    ``im`` is the inverse mass; a base node has ``im == 0`` and never moves.
    Positions are in model units, masses in kg.
    """

    id: Optional[str]
    x: float = 0.0
    y: float = 0.0
    m: Optional[float] = None  # declared mass, None for the unit default
    base: bool = False
    idloc: Optional[str] = None

    x0: float = field(init=False)
    y0: float = field(init=False)
    xt: float = field(default=0.0, init=False)
    yt: float = field(default=0.0, init=False)
    xtt: float = field(default=0.0, init=False)
    ytt: float = field(default=0.0, init=False)
    dxt: float = field(default=0.0, init=False)
    dyt: float = field(default=0.0, init=False)
    Qx: float = field(default=0.0, init=False)
    Qy: float = field(default=0.0, init=False)
    im: float = field(default=1.0, init=False)
    _calm_steps: int = field(default=0, init=False, repr=False)

    def __post_init__(self):
        self.x = float(self.x)
        self.y = float(self.y)
        self.x0 = self.x
        self.y0 = self.y
        self.im = self._inverse_mass()

    def _inverse_mass(self) -> float:
        if self.m is not None:
            return 1 / self.m if self.m else math.inf
        return 0.0 if self.base else 1.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Node":
        return cls(
            id=data.get("id"),
            x=data.get("x", 0.0),
            y=data.get("y", 0.0),
            m=data.get("m"),
            base=bool(data.get("base", False)),
            idloc=data.get("idloc"),
        )

    # --- validation and setup ------------------------------------------------

    def validate(self, model: "Model", idx: int) -> List[Message]:
        if not self.id:
            return [Message("E_ELEM_ID_MISSING", {"elemtype": "node", "idx": idx})]
        if model.element_by_id(self.id) is not self:
            return [Message("E_ELEM_ID_AMBIGIOUS", {"elemtype": "node", "id": self.id})]
        if self.m is not None and abs(self.m) < model.config.eps:
            return [Message("E_NODE_MASS_TOO_SMALL", {"id": self.id, "m": self.m})]
        return []

    def init(self) -> None:
        self.im = self._inverse_mass()

    # --- properties ----------------------------------------------------------

    @property
    def is_base(self) -> bool:
        return self.im == 0

    @property
    def mass(self) -> float:
        return 1 / self.im if self.im else math.inf

    @property
    def dof(self) -> int:
        return 0 if self.is_base else 2

    @property
    def xtcur(self) -> float:
        """Velocity while iterating, before the increment is committed."""
        return self.xt + self.dxt

    @property
    def ytcur(self) -> float:
        return self.yt + self.dyt

    @property
    def is_sleeping(self) -> bool:
        return self.is_base or self._calm_steps >= 2

    # --- time step -----------------------------------------------------------

    def clear(self) -> None:
        self.Qx = self.Qy = 0.0
        self.dxt = self.dyt = 0.0

    def apply_gravity(self, gx: float, gy: float) -> None:
        """Add weight; ``gx, gy`` in model units."""
        if not self.is_base:
            m = self.mass
            self.Qx += m * gx
            self.Qy += m * gy

    def predict(self, dt: float) -> None:
        # semi-implicit Euler
        self.dxt += self.Qx * self.im * dt
        self.dyt += self.Qy * self.im * dt
        self.x += (self.xt + 1.5 * self.dxt) * dt
        self.y += (self.yt + 1.5 * self.dyt) * dt

    def finalize(self, dt: float, vel_tol: float) -> None:
        self.xt += self.dxt
        self.yt += self.dyt
        self.xtt = self.dxt / dt
        self.ytt = self.dyt / dt

        acc_tol = vel_tol / dt
        calm = abs(self.xt) < vel_tol and abs(self.yt) < vel_tol and abs(self.xtt) < acc_tol and abs(self.ytt) < acc_tol
        self._calm_steps = self._calm_steps + 1 if calm else 0

    def stop(self) -> None:
        self.xt = self.yt = 0.0
        self.xtt = self.ytt = 0.0

    def reset(self) -> None:
        if not self.is_base:
            self.x = self.x0
            self.y = self.y0
        self.xt = self.yt = 0.0
        self.xtt = self.ytt = 0.0
        self.dxt = self.dyt = 0.0
        self._calm_steps = 0

    def energy(self, gravity: Optional[Tuple[float, float]] = None) -> float:
        """Potential plus kinetic energy in model units; ``gravity`` in model units."""
        if self.is_base:
            return 0.0
        m = self.mass
        e = 0.5 * m * (self.xt**2 + self.yt**2)
        if gravity is not None:
            e += m * (-(self.x - self.x0) * gravity[0] - (self.y - self.y0) * gravity[1])
        return e

    def depends_on(self, elem: object) -> bool:
        return False

    # --- analysis ------------------------------------------------------------

    @property
    def pos(self) -> Tuple[float, float]:
        return (self.x, self.y)

    @property
    def vel(self) -> Tuple[float, float]:
        return (self.xt, self.yt)

    @property
    def acc(self) -> Tuple[float, float]:
        return (self.xtt, self.ytt)

    @property
    def force(self) -> Tuple[float, float]:
        return (self.Qx, self.Qy)

    @property
    def vel_abs(self) -> float:
        return math.hypot(self.xt, self.yt)

    @property
    def acc_abs(self) -> float:
        return math.hypot(self.xtt, self.ytt)

    @property
    def force_abs(self) -> float:
        return math.hypot(self.Qx, self.Qy)

    # --- output --------------------------------------------------------------

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "x": self.x0, "y": self.y0}
        if self.m is not None:
            data["m"] = self.m
        if self.base:
            data["base"] = True
        if self.idloc:
            data["idloc"] = self.idloc
        return data

    def draw(self, renderer: "Renderer") -> None:
        renderer.node(self.id, self.x, self.y, base=self.is_base)
