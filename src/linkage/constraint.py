"""
Constraints between two nodes.

A constraint restricts the vector ``p2 - p1`` by an orientation
sub-constraint ``ori`` and a length sub-constraint ``len``. Each of them is
free, fixed (``const``) or driven, and may be chained to a sub-constraint of
another constraint through a ratio (gearing, coupling).

Corrections are applied as impulses. At position level the impulse is a
pseudo impulse moving the nodes, at velocity level it changes the per-step
velocity increments and is accumulated as a Lagrange multiplier, which is
reused on the next tick (warm start) and yields the joint force and moment.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from .drive import Drive, make_shape
from .messages import Message

if TYPE_CHECKING:
    from .model import Model
    from .node import Node
    from .render import Renderer

_PI2 = 2 * math.pi

# Drive range defaults per sub-constraint
DEFAULT_DW = _PI2
DEFAULT_DR = 100.0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def inf_angle(winf: float, w: float) -> float:
    """Extend the unbounded angle ``winf`` to ``w`` in [-pi, pi] by the shortest way."""
    d = w - math.fmod(winf, _PI2)
    if d > math.pi:
        d -= _PI2
    elif d < -math.pi:
        d += _PI2
    return winf + d


class SubKind(str, Enum):
    FREE = "free"
    FIXED = "const"
    DRIVEN = "drive"

    @classmethod
    def parse(cls, value: Any) -> "SubKind":
        aliases = {"free": cls.FREE, "const": cls.FIXED, "fixed": cls.FIXED, "drive": cls.DRIVEN, "driven": cls.DRIVEN}
        if isinstance(value, cls):
            return value
        try:
            return aliases[str(value)]
        except KeyError:
            raise ValueError(f"Unknown sub-constraint type '{value}'")


@dataclass(eq=False)
class Reference:
    """Chain to a sub-constraint of another constraint."""

    target: str  # constraint id
    reftype: str  # "ori" | "len"
    ratio: float = 1.0
    passive: bool = False

    constraint: Optional["Constraint"] = field(default=None, init=False, repr=False)
    gain: float = field(default=1.0, init=False)  # ratio in effect

    def __post_init__(self):
        if self.reftype not in ("ori", "len"):
            raise ValueError(f"Unknown reference type '{self.reftype}'")


@dataclass
class DriveParams:
    func: Optional[str] = None
    t0: float = 0.0
    Dt: float = 1.0
    Dz: Optional[float] = None  # Dw for ori, Dr for len
    bounce: bool = False
    repeat: Optional[int] = None
    input: bool = False
    args: Any = None  # payload of parametric functions (seq, inPot, ...)


@dataclass(eq=False)
class SubConstraint:
    """One scalar restriction of a constraint, tagged by ``kind``.

    ``free`` carries no payload, ``const`` an optional reference, ``drive``
    its drive parameters plus an optional reference.
    """

    name: str  # "ori" | "len"
    kind: SubKind = SubKind.FREE
    initial: Optional[float] = None  # explicit w0 / r0
    ref: Optional[Reference] = None
    params: Optional[DriveParams] = None

    drive: Optional[Drive] = field(default=None, init=False, repr=False)
    local_t: float = field(default=0.0, init=False)  # time of input controlled drives

    def __post_init__(self):
        if self.kind is SubKind.DRIVEN and self.params is None:
            self.params = DriveParams()

    @property
    def restricted(self) -> bool:
        return self.kind is not SubKind.FREE

    @property
    def is_input(self) -> bool:
        return self.kind is SubKind.DRIVEN and self.params.input

    @property
    def _initial_key(self) -> str:
        return "w0" if self.name == "ori" else "r0"

    @property
    def _range_key(self) -> str:
        return "Dw" if self.name == "ori" else "Dr"

    @classmethod
    def from_dict(cls, name: str, data: Optional[Mapping[str, Any]]) -> "SubConstraint":
        if not data:
            return cls(name)
        if not isinstance(data, Mapping):
            raise ValueError(f"'{name}' must be an object")
        sub = cls(name, kind=SubKind.parse(data.get("type", "free")))
        sub.initial = data.get(sub._initial_key)
        if data.get("ref"):
            ratio = data.get("ratio")
            sub.ref = Reference(
                target=data["ref"],
                reftype=data.get("reftype") or name,
                ratio=1.0 if ratio is None else float(ratio),
                passive=bool(data.get("passive", False)),
            )
        if sub.kind is SubKind.DRIVEN:
            sub.params = DriveParams(
                func=data.get("func"),
                t0=data.get("t0") or 0.0,
                Dt=data.get("Dt") or 1.0,
                Dz=data.get(sub._range_key),
                bounce=bool(data.get("bounce", False)),
                repeat=data.get("repeat"),
                input=bool(data.get("input", False)),
                args=data.get("args"),
            )
        return sub

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind.value}
        if self.ref is not None:
            data["ref"] = self.ref.target
            if self.ref.reftype != self.name:
                data["reftype"] = self.ref.reftype
            if self.ref.ratio != 1:
                data["ratio"] = self.ref.ratio
            if self.ref.passive:
                data["passive"] = True
        if self.initial is not None:
            data[self._initial_key] = self.initial
        if self.kind is SubKind.DRIVEN:
            p = self.params
            if p.func:
                data["func"] = p.func
            if p.t0:
                data["t0"] = p.t0
            data["Dt"] = p.Dt
            if p.Dz is not None:
                data[self._range_key] = p.Dz
            if p.bounce:
                data["bounce"] = True
            if p.repeat:
                data["repeat"] = p.repeat
            if p.input:
                data["input"] = True
            if p.args is not None:
                data["args"] = p.args
        return data


@dataclass(eq=False)
class Constraint:
    """Orientation and length restriction of the vector from ``p1`` to ``p2``."""

    id: Optional[str]
    p1_id: Optional[str]
    p2_id: Optional[str]
    ori: SubConstraint = field(default_factory=lambda: SubConstraint("ori"))
    len: SubConstraint = field(default_factory=lambda: SubConstraint("len"))
    idloc: Optional[Any] = None

    p1: Optional["Node"] = field(default=None, init=False, repr=False)
    p2: Optional["Node"] = field(default=None, init=False, repr=False)
    model: Optional["Model"] = field(default=None, init=False, repr=False)
    initialized: bool = field(default=False, init=False)
    r0: float = field(default=0.0, init=False)
    w0: float = field(default=0.0, init=False)
    cw: float = field(default=1.0, init=False)
    sw: float = field(default=0.0, init=False)
    lambda_r: float = field(default=0.0, init=False)
    lambda_w: float = field(default=0.0, init=False)
    dlambda_r: float = field(default=0.0, init=False)
    dlambda_w: float = field(default=0.0, init=False)
    _angle: float = field(default=0.0, init=False, repr=False)
    _len_tol: float = field(default=1e-3, init=False, repr=False)
    _eps: float = field(default=1.19209e-07, init=False, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Constraint":
        if not isinstance(data, Mapping):
            raise ValueError("constraint must be an object")
        return cls(
            id=data.get("id"),
            p1_id=data.get("p1"),
            p2_id=data.get("p2"),
            ori=SubConstraint.from_dict("ori", data.get("ori")),
            len=SubConstraint.from_dict("len", data.get("len")),
            idloc=data.get("idloc"),
        )

    def subs(self) -> Tuple[SubConstraint, SubConstraint]:
        return (self.ori, self.len)

    def sub(self, name: str) -> SubConstraint:
        if name == "ori":
            return self.ori
        if name == "len":
            return self.len
        raise KeyError(name)

    def references(self) -> List["Constraint"]:
        """Resolved constraints this one is chained to."""
        return [s.ref.constraint for s in self.subs() if s.ref is not None and s.ref.constraint is not None]

    # =========================================================================
    # VALIDATION AND SETUP
    # =========================================================================

    def validate(self, model: "Model", idx: int) -> List[Message]:
        """Resolve node and constraint handles and check the declaration."""
        msgs: List[Message] = []

        if not self.id:
            return [Message("E_ELEM_ID_MISSING", {"elemtype": "constraint", "idx": idx})]
        if model.element_by_id(self.id) is not self:
            return [Message("E_ELEM_ID_AMBIGIOUS", {"elemtype": "constraint", "id": self.id})]

        for attr, loc in (("p1", "start"), ("p2", "end")):
            node_id = getattr(self, attr + "_id")
            if not node_id:
                return [Message("E_CSTR_NODE_MISSING", {"id": self.id, "loc": loc, "p": attr})]
            node = model.node_by_id(node_id)
            if node is None:
                return [Message("E_CSTR_NODE_NOT_EXISTS", {"id": self.id, "loc": loc, "p": attr, "nodeId": node_id})]
            setattr(self, attr, node)

        eps = model.config.eps
        if abs(self.p1.x - self.p2.x) < eps and abs(self.p1.y - self.p2.y) < eps:
            msgs.append(Message("W_CSTR_NODES_COINCIDE", {"id": self.id, "p1": self.p1.id, "p2": self.p2.id}))

        for sub in self.subs():
            if sub.kind is not SubKind.DRIVEN:
                continue
            p = sub.params
            bad = {"id": self.id, "sub": sub.name}
            if not _is_number(p.Dt) or p.Dt <= 0:
                return msgs + [Message("E_CSTR_DRIVE_INVALID", dict(bad, param="Dt", val=p.Dt))]
            for param, val in (("t0", p.t0), (sub._range_key, p.Dz)):
                if val is not None and not _is_number(val):
                    return msgs + [Message("E_CSTR_DRIVE_INVALID", dict(bad, param=param, val=val))]
            if p.repeat is not None and (not isinstance(p.repeat, int) or isinstance(p.repeat, bool) or p.repeat < 1):
                return msgs + [Message("E_CSTR_DRIVE_INVALID", dict(bad, param="repeat", val=p.repeat))]
            try:
                make_shape(p.func, p.args)
            except ValueError:
                return msgs + [Message("E_CSTR_DRIVE_INVALID", dict(bad, param="args", val=p.args))]

        for sub in self.subs():
            if sub.ref is None:
                continue
            ref = model.constraint_by_id(sub.ref.target)
            if ref is None:
                return msgs + [Message("E_CSTR_REF_NOT_EXISTS", {"id": self.id, "sub": sub.name, "ref": sub.ref.target})]
            sub.ref.constraint = ref
            if sub.kind is SubKind.DRIVEN:
                params = {"id": self.id, "sub": sub.name, "ref": ref.id, "reftype": sub.ref.reftype}
                if not ref.sub(sub.ref.reftype).restricted:
                    return msgs + [Message("E_CSTR_DRIVEN_REF_TO_FREE", params)]
                if sub.ref.ratio != 1:
                    msgs.append(Message("W_CSTR_RATIO_IGNORED", params))
        return msgs

    def init(self, model: "Model") -> None:
        """Set up a validated constraint. Referenced constraints are initialized first."""
        self.model = model
        self._len_tol = model.config.len_tol
        self._eps = model.config.eps
        for sub in self.subs():
            if sub.ref is not None:
                sub.ref.gain = 1.0 if sub.kind is SubKind.DRIVEN else sub.ref.ratio

        self._init_vector()
        self._angle = self.w0
        for sub in self.subs():
            if sub.kind is SubKind.DRIVEN:
                self._init_drive(sub)

        self._update_trig()
        self.lambda_r = self.dlambda_r = 0.0
        self.lambda_w = self.dlambda_w = 0.0
        self.initialized = True

    def _init_vector(self) -> None:
        """Initial length and orientation; explicit values place the nodes."""
        ori, ln = self.ori, self.len
        placed = False

        if ln.initial is not None:
            self.r0 = float(ln.initial)
            placed = True
            if ln.ref is not None and ln.ref.reftype == "len":
                self.r0 += ln.ref.gain * ln.ref.constraint.r0
        else:
            self.r0 = math.hypot(self.ay, self.ax)

        if ori.initial is not None:
            self.w0 = float(ori.initial)
            placed = True
            if ori.ref is not None and ori.ref.reftype == "ori":
                self.w0 += ori.ref.gain * ori.ref.constraint.w0
        else:
            self.w0 = math.atan2(self.ay, self.ax)

        if placed:
            dx, dy = self.r0 * math.cos(self.w0), self.r0 * math.sin(self.w0)
            if self.p2.is_base and not self.p1.is_base:
                self.p1.x, self.p1.y = self.p2.x - dx, self.p2.y - dy
            elif not self.p2.is_base:
                self.p2.x, self.p2.y = self.p1.x + dx, self.p1.y + dy

    def _init_drive(self, sub: SubConstraint) -> None:
        p = sub.params
        is_ori = sub.name == "ori"
        base = self.w0 if is_ori else self.r0
        sub.drive = Drive(
            func=p.func or ("static" if p.input else "linear"),
            t0=p.t0,
            Dt=p.Dt,
            Dz=p.Dz if p.Dz is not None else (DEFAULT_DW if is_ori else DEFAULT_DR),
            z0=0.0 if sub.ref is not None else base,
            bounce=p.bounce,
            repeat=p.repeat,
            args=p.args,
        )

    def reset(self) -> None:
        self._init_vector()
        self._angle = self.w0
        self.lambda_r = self.dlambda_r = 0.0
        self.lambda_w = self.dlambda_w = 0.0
        self._update_trig()

    def set_input(self, name: str, value: float) -> None:
        """Position an input controlled drive; ``value`` in drive units."""
        sub = self.sub(name)
        if not sub.is_input:
            raise ValueError(f"{name} of constraint '{self.id}' is not an input drive")
        sub.local_t = value * sub.drive.Dt / sub.drive.Dz

    # =========================================================================
    # CLASSIFICATION
    # =========================================================================

    @property
    def type(self) -> str:
        ori, ln = self.ori.restricted, self.len.restricted
        if not ori and not ln:
            return "free"
        if not ori:
            return "rot"
        if not ln:
            return "tran"
        return "ctrl"

    @property
    def dof(self) -> int:
        return (0 if self.ori.restricted else 1) + (0 if self.len.restricted else 1)

    def active_drive_count(self, t: float, dt: float) -> int:
        count = 0
        for sub in self.subs():
            if sub.kind is SubKind.DRIVEN and (sub.params.input or sub.drive is not None and sub.drive.is_active(t, dt)):
                count += 1
        return count

    def depends_on(self, elem: object) -> bool:
        return elem is not None and (self.p1 is elem or self.p2 is elem or any(r is elem for r in self.references()))

    # =========================================================================
    # GEOMETRY
    # =========================================================================

    @property
    def ax(self) -> float:
        return self.p2.x - self.p1.x

    @property
    def ay(self) -> float:
        return self.p2.y - self.p1.y

    @property
    def axt(self) -> float:
        return self.p2.xtcur - self.p1.xtcur

    @property
    def ayt(self) -> float:
        return self.p2.ytcur - self.p1.ytcur

    @property
    def axtt(self) -> float:
        return self.p2.xtt - self.p1.xtt

    @property
    def aytt(self) -> float:
        return self.p2.ytt - self.p1.ytt

    @property
    def proj(self) -> float:
        """Separation along the cached orientation."""
        return self.ax * self.cw + self.ay * self.sw

    @property
    def proj_t(self) -> float:
        return self.axt * self.cw + self.ayt * self.sw

    @property
    def perp_t(self) -> float:
        """Separation velocity normal to the cached orientation."""
        return self.ayt * self.cw - self.axt * self.sw

    def _phi(self) -> float:
        """Actual orientation, unwrapped across full turns."""
        self._angle = inf_angle(self._angle, math.atan2(self.ay, self.ax))
        return self._angle

    def _time(self, sub: SubConstraint) -> float:
        return sub.local_t if sub.params.input else self.model.t

    def _update_trig(self) -> None:
        w = self.w
        self.cw = math.cos(w)
        self.sw = math.sin(w)

    def _to_zero(self, a: float) -> float:
        return 0.0 if -self._eps < a < self._eps else a

    # =========================================================================
    # SUB-CONSTRAINT VALUES
    # =========================================================================

    def _ref_offset(self, sub: SubConstraint, order: int) -> float:
        """Ratio-scaled contribution of the referenced sub-constraint.

        ``order`` selects value (0), rate (1) or rate of change (2).
        """
        ref = sub.ref
        rc = ref.constraint
        if sub.name == "ori":
            if ref.reftype == "ori":
                src = (rc.w - rc.w0, rc.wt, rc.wtt)[order]
                return ref.gain * src
            r = self.r
            src = (rc.r - rc.r0, rc.rt, rc.rtt)[order]
            return ref.gain * src / r if r else 0.0
        if ref.reftype == "len":
            src = (rc.r - rc.r0, rc.rt, rc.rtt)[order]
            return ref.gain * src
        src = (rc.w - rc.w0, rc.wt, rc.wtt)[order]
        return ref.gain * rc.r * src

    def _restricted_value(self, sub: SubConstraint, base: float, order: int) -> float:
        if sub.kind is SubKind.DRIVEN:
            t = self._time(sub)
            value = (sub.drive.value, sub.drive.rate, sub.drive.rate_of_change)[order](t)
            if sub.ref is None:
                return value
        else:
            value = 0.0
        if order == 0:
            value += base
        if sub.ref is not None:
            value += self._ref_offset(sub, order)
        return value

    def _drive_term(self, sub: SubConstraint, order: int) -> float:
        if sub.kind is not SubKind.DRIVEN:
            return 0.0
        t = self._time(sub)
        return (sub.drive.value, sub.drive.rate)[order](t)

    @property
    def w(self) -> float:
        """Orientation in rad, actual when free, target otherwise."""
        if not self.ori.restricted:
            return self._phi()
        return self._restricted_value(self.ori, self.w0, 0)

    @property
    def wt(self) -> float:
        if not self.ori.restricted:
            r = self.r
            return self.perp_t / r if r else 0.0
        return self._restricted_value(self.ori, self.w0, 1)

    @property
    def wtt(self) -> float:
        if not self.ori.restricted:
            r = self.r
            return (self.aytt * self.cw - self.axtt * self.sw) / r if r else 0.0
        return self._restricted_value(self.ori, self.w0, 2)

    @property
    def r(self) -> float:
        """Length in model units, actual when free, target otherwise."""
        if not self.len.restricted:
            return self.proj
        return self._restricted_value(self.len, self.r0, 0)

    @property
    def rt(self) -> float:
        if not self.len.restricted:
            return self.proj_t
        return self._restricted_value(self.len, self.r0, 1)

    @property
    def rtt(self) -> float:
        if not self.len.restricted:
            return self.axtt * self.cw + self.aytt * self.sw
        return self._restricted_value(self.len, self.r0, 2)

    # =========================================================================
    # CONSTRAINT EQUATIONS
    # =========================================================================

    def _coupling(self, sub: SubConstraint) -> float:
        ref = sub.ref
        if sub.name == "ori" and ref.reftype == "ori":
            return ref.gain * self.r / (ref.constraint.r or 1.0)
        return ref.gain

    def _effective_mass(self, sub: SubConstraint) -> float:
        imc = self._to_zero(self.p1.im + self.p2.im)
        ref = sub.ref
        if ref is not None and not ref.passive:
            rc = ref.constraint
            imc += self._coupling(sub) ** 2 * self._to_zero(rc.p1.im + rc.p2.im)
        return 1 / imc if imc else 0.0

    def _ori_C(self) -> float:
        ori = self.ori
        if ori.ref is None:
            return self.ay * self.cw - self.ax * self.sw
        ref, rc, r = ori.ref, ori.ref.constraint, self.r
        C = r * (self._phi() - self.w0 - self._drive_term(ori, 0))
        if ref.reftype == "ori":
            return C - ref.gain * r * (rc._phi() - rc.w0)
        return C - ref.gain * (rc.proj - rc.r0)

    def _ori_Ct(self) -> float:
        ori = self.ori
        if ori.ref is None:
            return self.perp_t - self.wt * self.r
        ref, rc, r = ori.ref, ori.ref.constraint, self.r
        Ct = self.perp_t - r * self._drive_term(ori, 1)
        if ref.reftype == "ori":
            return Ct - ref.gain * r / (rc.r or 1.0) * rc.perp_t
        return Ct - ref.gain * rc.proj_t

    def _len_C(self) -> float:
        ln = self.len
        if ln.ref is None:
            return self.proj - self.r
        ref, rc = ln.ref, ln.ref.constraint
        C = self.proj - self.r0 - self._drive_term(ln, 0)
        if ref.reftype == "len":
            return C - ref.gain * (rc.proj - rc.r0)
        return C - ref.gain * rc.r * (rc._phi() - rc.w0)

    def _len_Ct(self) -> float:
        ln = self.len
        if ln.ref is None:
            return self.proj_t - self.rt
        ref, rc = ln.ref, ln.ref.constraint
        Ct = self.proj_t - self._drive_term(ln, 1)
        if ref.reftype == "len":
            return Ct - ref.gain * rc.proj_t
        return Ct - ref.gain * rc.perp_t

    # =========================================================================
    # IMPULSES
    # =========================================================================

    def ori_impulse_pos(self, impulse: float) -> None:
        p1, p2 = self.p1, self.p2
        p1.x += p1.im * self.sw * impulse
        p1.y += -p1.im * self.cw * impulse
        p2.x += -p2.im * self.sw * impulse
        p2.y += p2.im * self.cw * impulse

    def ori_impulse_vel(self, impulse: float) -> None:
        p1, p2 = self.p1, self.p2
        p1.dxt += p1.im * self.sw * impulse
        p1.dyt += -p1.im * self.cw * impulse
        p2.dxt += -p2.im * self.sw * impulse
        p2.dyt += p2.im * self.cw * impulse

    def ori_apply_Q(self, lam: float) -> None:
        p1, p2 = self.p1, self.p2
        p1.Qx += self.sw * lam
        p1.Qy += -self.cw * lam
        p2.Qx += -self.sw * lam
        p2.Qy += self.cw * lam

    def len_impulse_pos(self, impulse: float) -> None:
        p1, p2 = self.p1, self.p2
        p1.x += -p1.im * self.cw * impulse
        p1.y += -p1.im * self.sw * impulse
        p2.x += p2.im * self.cw * impulse
        p2.y += p2.im * self.sw * impulse

    def len_impulse_vel(self, impulse: float) -> None:
        p1, p2 = self.p1, self.p2
        p1.dxt += -p1.im * self.cw * impulse
        p1.dyt += -p1.im * self.sw * impulse
        p2.dxt += p2.im * self.cw * impulse
        p2.dyt += p2.im * self.sw * impulse

    def len_apply_Q(self, lam: float) -> None:
        p1, p2 = self.p1, self.p2
        p1.Qx += -self.cw * lam
        p1.Qy += -self.sw * lam
        p2.Qx += self.cw * lam
        p2.Qy += self.sw * lam

    def _propagate_pos(self, sub: SubConstraint, impulse: float) -> None:
        ref = sub.ref
        if ref is None or ref.passive:
            return
        counter = -self._coupling(sub) * impulse
        if ref.reftype == "len":
            ref.constraint.len_impulse_pos(counter)
        else:
            ref.constraint.ori_impulse_pos(counter)

    def _propagate_vel(self, sub: SubConstraint, impulse: float, dt: float) -> None:
        ref = sub.ref
        if ref is None or ref.passive:
            return
        counter = -self._coupling(sub) * impulse
        rc = ref.constraint
        if ref.reftype == "len":
            rc.len_impulse_vel(counter)
            rc.dlambda_r += counter / dt
        else:
            rc.ori_impulse_vel(counter)
            rc.dlambda_w += counter / dt

    def _ori_pos(self) -> bool:
        C = self._ori_C()
        impulse = -self._effective_mass(self.ori) * C
        self.ori_impulse_pos(impulse)
        self._propagate_pos(self.ori, impulse)
        return abs(C) <= self._len_tol

    def _ori_vel(self, dt: float) -> bool:
        Ct = self._ori_Ct()
        impulse = -self._effective_mass(self.ori) * Ct
        self.ori_impulse_vel(impulse)
        self.dlambda_w += impulse / dt
        self._propagate_vel(self.ori, impulse, dt)
        return abs(Ct * dt) <= self._len_tol

    def _len_pos(self) -> bool:
        C = self._len_C()
        impulse = -self._effective_mass(self.len) * C
        self.len_impulse_pos(impulse)
        self._propagate_pos(self.len, impulse)
        return abs(C) <= self._len_tol

    def _len_vel(self, dt: float) -> bool:
        Ct = self._len_Ct()
        impulse = -self._effective_mass(self.len) * Ct
        self.len_impulse_vel(impulse)
        self.dlambda_r += impulse / dt
        self._propagate_vel(self.len, impulse, dt)
        return abs(Ct * dt) <= self._len_tol

    # =========================================================================
    # TIME STEP
    # =========================================================================

    def pre(self, dt: float) -> None:
        self._update_trig()
        # warm start
        self.ori_impulse_vel(self.lambda_w * dt)
        self.len_impulse_vel(self.lambda_r * dt)
        self.dlambda_r = self.dlambda_w = 0.0

    def pos_step(self) -> bool:
        """One position correction; True when the residuals are within tolerance."""
        self._update_trig()
        kind = self.type
        if kind == "free":
            return True
        if kind == "rot":
            return self._len_pos()
        if kind == "tran":
            return self._ori_pos()
        res = self._ori_pos()
        return self._len_pos() and res

    def vel_step(self, dt: float) -> bool:
        kind = self.type
        if kind == "free":
            return True
        if kind == "rot":
            return self._len_vel(dt)
        if kind == "tran":
            return self._ori_vel(dt)
        res = self._ori_vel(dt)
        return self._len_vel(dt) and res

    def post(self, dt: float) -> None:
        # Q = J^T * lambda
        self.lambda_w += self.dlambda_w
        self.ori_apply_Q(self.lambda_w)
        self.lambda_r += self.dlambda_r
        self.len_apply_Q(self.lambda_r)

    # =========================================================================
    # ANALYSIS
    # =========================================================================

    @property
    def force(self) -> float:
        """Axial force in model units."""
        return -self.lambda_r

    @property
    def moment(self) -> float:
        return -self.lambda_w * self.r

    @property
    def pole(self) -> Optional[Tuple[float, float]]:
        """Instantaneous centre of velocity."""
        wt = self.wt
        if not wt:
            return None
        p1 = self.p1
        return (p1.x - p1.yt / wt, p1.y + p1.xt / wt)

    @property
    def infl_pole(self) -> Optional[Tuple[float, float]]:
        wt, wtt = self.wt, self.wtt
        if not wt:
            return None
        p1 = self.p1
        return (
            p1.x + p1.xtt / wt**2 - wtt / wt**3 * p1.xt,
            p1.y + p1.ytt / wt**2 - wtt / wt**3 * p1.yt,
        )

    @property
    def acc_pole(self) -> Optional[Tuple[float, float]]:
        wt2, wtt = self.wt**2, self.wtt
        den = wtt**2 + wt2**2
        if not den:
            return None
        p1 = self.p1
        return (
            p1.x + (wt2 * p1.xtt - wtt * p1.ytt) / den,
            p1.y + (wt2 * p1.ytt + wtt * p1.xtt) / den,
        )

    # =========================================================================
    # OUTPUT
    # =========================================================================

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "p1": self.p1_id, "p2": self.p2_id}
        for sub in (self.len, self.ori):
            if sub.restricted or sub.initial is not None:
                data[sub.name] = sub.as_dict()
        if self.idloc is not None:
            data["idloc"] = self.idloc
        return data

    def draw(self, renderer: "Renderer") -> None:
        p1, p2 = self.p1, self.p2
        renderer.constraint(self.id, p1.x, p1.y, p2.x, p2.y, kind=self.type)
