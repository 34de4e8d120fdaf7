"""
Motion profiles for driven sub-constraints.

A profile maps normalized progress ``q`` in ``[0, 1]`` to a normalized value
and its first and second derivatives with respect to ``q``. Profiles follow
VDI 2145 cam laws and the common easing functions.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Callable, Dict, List, Mapping, Optional

Curve = Callable[[float], float]


@dataclass(frozen=True)
class Shape:
    """Normalized motion law: value, slope and curvature over progress q."""

    f: Curve
    fd: Curve
    fdd: Curve


def _power(n: int) -> Shape:
    if n == 0:
        return Shape(lambda q: 1.0, lambda q: 0.0, lambda q: 0.0)
    if n == 1:
        return Shape(lambda q: q, lambda q: 1.0, lambda q: 0.0)
    return Shape(lambda q: q**n, lambda q: n * q ** (n - 1), lambda q: n * (n - 1) * q ** (n - 2))


def ease_in(n: int) -> Shape:
    return _power(n)


def ease_out(n: int) -> Shape:
    fn = _power(n)
    return Shape(lambda q: 1 - fn.f(1 - q), lambda q: fn.fd(1 - q), lambda q: -fn.fdd(1 - q))


def ease_in_out(n: int) -> Shape:
    fn = _power(n)
    k = 2 ** (n - 1)
    return Shape(
        lambda q: k * fn.f(q) if q < 0.5 else 1 - k * fn.f(1 - q),
        lambda q: k * fn.fd(q) if q < 0.5 else k * fn.fd(1 - q),
        lambda q: k * fn.fdd(q) if q < 0.5 else -k * fn.fdd(1 - q),
    )


def bounce(shape: Shape) -> Shape:
    """Run the shape forward in the first half and backward in the second."""

    def fold(q: float) -> float:
        return 2 * q if q < 0.5 else 2 - 2 * q

    return Shape(
        lambda q: shape.f(fold(q)),
        lambda q: shape.fd(fold(q)) * (1 if q < 0.5 else -1),
        lambda q: shape.fdd(fold(q)),
    )


def repeat(shape: Shape, n: int) -> Shape:
    """Tile the shape ``n`` times over the unit interval."""
    return Shape(
        lambda q: shape.f((q * n) % 1),
        lambda q: shape.fd((q * n) % 1),
        lambda q: shape.fdd((q * n) % 1),
    )


_PI = math.pi

SHAPES: Dict[str, Shape] = {
    # resting segment
    "const": Shape(lambda q: 0.0, lambda q: 0.0, lambda q: 0.0),
    "linear": Shape(lambda q: q, lambda q: 1.0, lambda q: 0.0),
    "quadratic": Shape(
        lambda q: 2 * q * q if q <= 0.5 else -2 * q * q + 4 * q - 1,
        lambda q: 4 * q if q <= 0.5 else -4 * q + 4,
        lambda q: 4.0 if q <= 0.5 else -4.0,
    ),
    "harmonic": Shape(
        lambda q: (1 - math.cos(_PI * q)) / 2,
        lambda q: _PI / 2 * math.sin(_PI * q),
        lambda q: _PI * _PI / 2 * math.cos(_PI * q),
    ),
    "sinoid": Shape(
        lambda q: q - math.sin(2 * _PI * q) / 2 / _PI,
        lambda q: 1 - math.cos(2 * _PI * q),
        lambda q: math.sin(2 * _PI * q) * 2 * _PI,
    ),
    "poly5": Shape(
        lambda q: (10 - 15 * q + 6 * q * q) * q * q * q,
        lambda q: (30 - 60 * q + 30 * q * q) * q * q,
        lambda q: (60 - 180 * q + 120 * q * q) * q,
    ),
    # actuator position without velocity and acceleration
    "static": Shape(lambda q: q, lambda q: 0.0, lambda q: 0.0),
}

for _n, _name in ((2, "Quad"), (3, "Cubic"), (4, "Quart"), (5, "Quint")):
    SHAPES["in" + _name] = ease_in(_n)
    SHAPES["out" + _name] = ease_out(_n)
    SHAPES["inOut" + _name] = ease_in_out(_n)


@dataclass(frozen=True)
class Segment:
    """One piece of a sequence: a named shape running ``dt`` and moving ``dz``."""

    func: str
    dt: float
    dz: float = 0.0

    @classmethod
    def parse(cls, data: Any) -> "Segment":
        if not isinstance(data, Mapping):
            raise ValueError("sequence segment must be an object")
        func = data.get("func", "linear")
        if not isinstance(func, str) or func not in SHAPES:
            raise ValueError(f"Unknown segment function '{func}'")
        try:
            dt = float(data.get("dt", 0))
            dz = float(data.get("dz") or 0.0)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid segment {dict(data)!r}")
        if dt <= 0:
            raise ValueError(f"Segment duration must be positive, got {dt}")
        return cls(func, dt, dz)


def sequence(segments: Any) -> Shape:
    """Chain segments into one shape.

    Segment times are scaled to the unit interval, values to the range
    swept by the chain, so ``f(0) == 0`` and ``Dz`` sets the range.
    """
    if not isinstance(segments, (list, tuple)) or not segments:
        raise ValueError("sequence needs a non-empty list of segments")
    segs = [Segment.parse(s) for s in segments]
    total = sum(s.dt for s in segs)
    starts, z = [], 0.0
    zs = [z]
    for s in segs:
        starts.append(z)
        z += s.dz
        zs.append(z)
    span = max(zs) - min(zs)
    if span == 0:
        raise ValueError("sequence does not move")

    def locate(q: float):
        t = q * total
        for seg, z0 in zip(segs, starts):
            if t <= seg.dt:
                return seg, z0, t / seg.dt
            t -= seg.dt
        return segs[-1], starts[-1], 1.0

    def f(q: float) -> float:
        seg, z0, u = locate(q)
        return (z0 + SHAPES[seg.func].f(u) * seg.dz) / span

    def fd(q: float) -> float:
        seg, _, u = locate(q)
        return SHAPES[seg.func].fd(u) * seg.dz * total / (seg.dt * span)

    def fdd(q: float) -> float:
        seg, _, u = locate(q)
        return SHAPES[seg.func].fdd(u) * seg.dz * total * total / (seg.dt * seg.dt * span)

    return Shape(f, fd, fdd)


def _order(args: Any) -> int:
    if isinstance(args, bool) or not isinstance(args, int) or args < 1:
        raise ValueError(f"Power order must be a positive integer, got {args!r}")
    return args


# shapes built from ``args``
PARAMETRIC: Dict[str, Callable[[Any], Shape]] = {
    "seq": sequence,
    "inPot": lambda n: ease_in(_order(n)),
    "outPot": lambda n: ease_out(_order(n)),
    "inOutPot": lambda n: ease_in_out(_order(n)),
}


def make_shape(func: Optional[str], args: Any = None) -> Shape:
    """Shape for a function name; unknown names fall back to linear."""
    if not isinstance(func, str):
        return SHAPES["linear"]
    if func in PARAMETRIC:
        return PARAMETRIC[func](args)
    return SHAPES.get(func, SHAPES["linear"])


@dataclass(frozen=True)
class Drive:
    """Time-parametrized motion profile.

    ``value`` follows ``z0 + f(q)·Dz`` with ``q = (t - t0)/T`` clamped to the
    unit interval, ``T`` being the effective duration after bouncing and
    repeating. Rate and rate of change vanish outside ``[t0, t0 + T)``.
    """

    func: str = "linear"
    t0: float = 0.0
    Dt: float = 1.0
    Dz: float = 1.0
    z0: float = 0.0
    bounce: bool = False
    repeat: Optional[int] = None
    args: Any = None

    def __post_init__(self):
        if self.Dt <= 0:
            raise ValueError(f"Drive duration must be positive, got {self.Dt}")
        if self.repeat is not None and self.repeat < 1:
            raise ValueError(f"Drive repeat count must be at least 1, got {self.repeat}")
        make_shape(self.func, self.args)

    @staticmethod
    def names() -> List[str]:
        return list(SHAPES) + list(PARAMETRIC)

    @cached_property
    def shape(self) -> Shape:
        shape = make_shape(self.func, self.args)
        if self.func == "static":
            return shape
        if self.bounce:
            shape = bounce(shape)
        if self.repeat:
            shape = repeat(shape, self.repeat)
        return shape

    @property
    def duration(self) -> float:
        """Effective duration including bounce and repetitions."""
        if self.func == "static":
            return self.Dt
        return self.Dt * (2 if self.bounce else 1) * (self.repeat or 1)

    def _running(self, t: float) -> bool:
        return self.t0 <= t < self.t0 + self.duration

    def value(self, t: float) -> float:
        q = min(max((t - self.t0) / self.duration, 0.0), 1.0)
        return self.z0 + self.shape.f(q) * self.Dz

    def rate(self, t: float) -> float:
        if not self._running(t):
            return 0.0
        return self.shape.fd((t - self.t0) / self.duration) * self.Dz / self.Dt

    def rate_of_change(self, t: float) -> float:
        if not self._running(t):
            return 0.0
        return self.shape.fdd((t - self.t0) / self.duration) * self.Dz / self.Dt / self.Dt

    def is_active(self, t: float, dt: float) -> bool:
        return t <= self.t0 + self.duration + 0.5 * dt
