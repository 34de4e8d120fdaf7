"""Loads acting on nodes: external forces and linear springs."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Dict, List, Mapping, Optional, Type

from .messages import Message, elem_label

if TYPE_CHECKING:
    from .constraint import Constraint
    from .model import Model
    from .node import Node
    from .render import Renderer


@dataclass(eq=False)
class Load:
    """Base of all loads. Use ``Load.create`` to build one from its declaration."""

    type: ClassVar[str] = ""
    registry: ClassVar[Dict[str, Type["Load"]]] = {}

    id: Optional[str] = None
    idloc: Optional[Any] = None

    model: Optional["Model"] = field(default=None, init=False, repr=False)
    initialized: bool = field(default=False, init=False)

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if cls.type:
            Load.registry[cls.type] = cls

    @staticmethod
    def create(data: Mapping[str, Any]) -> "Load":
        if not isinstance(data, Mapping):
            raise ValueError("load must be an object")
        kind = data.get("type") or "force"
        try:
            cls = Load.registry[kind]
        except KeyError:
            raise ValueError(f"Unknown load type '{kind}'")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Load":
        raise NotImplementedError

    def _node_ref(self, model: "Model", idx: int, name: str, node_id: Optional[str]):
        """Resolve a node reference; returns the node or an error message."""
        label = elem_label(self.id, idx)
        if node_id is None:
            return Message("E_ELEM_REF_MISSING", {"elemtype": self.type, "label": label, "reftype": "node", "name": name})
        node = model.node_by_id(node_id)
        if node is None:
            return Message("E_ELEM_INVALID_REF", {"elemtype": self.type, "label": label, "reftype": "node", "name": node_id})
        return node

    def validate(self, model: "Model", idx: int) -> List[Message]:
        raise NotImplementedError

    def init(self, model: "Model") -> None:
        self.model = model
        self.initialized = True

    def apply(self) -> None:
        raise NotImplementedError

    @property
    def energy(self) -> float:
        return 0.0

    def reset(self) -> None:
        pass

    def depends_on(self, elem: object) -> bool:
        return False

    def as_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    def draw(self, renderer: "Renderer") -> None:
        raise NotImplementedError


@dataclass(eq=False)
class Force(Load):
    """Constant force on a node, oriented by ``w0`` plus an optional constraint angle."""

    type: ClassVar[str] = "force"

    p_id: Optional[str] = None
    value: Optional[float] = None  # N
    w0: float = 0.0
    wref_id: Optional[str] = None
    mode: str = "pull"

    p: Optional["Node"] = field(default=None, init=False, repr=False)
    wref: Optional["Constraint"] = field(default=None, init=False, repr=False)
    _value: float = field(default=0.0, init=False, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Force":
        return cls(
            id=data.get("id"),
            idloc=data.get("idloc"),
            p_id=data.get("p"),
            value=data.get("value"),
            w0=data.get("w0") or 0.0,
            wref_id=data.get("wref"),
            mode=data.get("mode") or "pull",
        )

    def validate(self, model: "Model", idx: int) -> List[Message]:
        msgs = []
        if not self.id:
            msgs.append(Message("W_ELEM_ID_MISSING", {"elemtype": "force", "idx": idx}))

        ref = self._node_ref(model, idx, "p", self.p_id)
        if isinstance(ref, Message):
            return msgs + [ref]
        self.p = ref

        if self.wref_id:
            self.wref = model.constraint_by_id(self.wref_id)
            if self.wref is None:
                label = elem_label(self.id, idx)
                return msgs + [Message("E_ELEM_INVALID_REF", {"elemtype": "force", "label": label, "reftype": "constraint", "name": "wref"})]

        if self.value is not None and abs(self.value) < model.config.eps:
            return msgs + [Message("E_FORCE_VALUE_INVALID", {"id": self.id, "val": self.value})]
        return msgs

    def init(self, model: "Model") -> None:
        super().init(model)
        self._value = model.units.from_N(self.value or 1.0)

    @property
    def w(self) -> float:
        return self.w0 + self.wref.w if self.wref is not None else self.w0

    @property
    def Qx(self) -> float:
        return self._value * math.cos(self.w)

    @property
    def Qy(self) -> float:
        return self._value * math.sin(self.w)

    @property
    def force_abs(self) -> float:
        return self._value

    def apply(self) -> None:
        self.p.Qx += self.Qx
        self.p.Qy += self.Qy

    def depends_on(self, elem: object) -> bool:
        return elem is not None and (self.p is elem or self.wref is elem)

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type, "id": self.id, "p": self.p_id}
        if self.mode == "push":
            data["mode"] = "push"
        if self.w0:
            data["w0"] = self.w0
        if self.wref_id:
            data["wref"] = self.wref_id
        if self.value is not None:
            data["value"] = self.value
        if self.idloc is not None:
            data["idloc"] = self.idloc
        return data

    def draw(self, renderer: "Renderer") -> None:
        renderer.force(self.id, self.p.x, self.p.y, self.w, push=self.mode == "push")


@dataclass(eq=False)
class Spring(Load):
    """Linear spring between two nodes; ``k`` in N/m, ``len0`` in model units."""

    type: ClassVar[str] = "spring"

    p1_id: Optional[str] = None
    p2_id: Optional[str] = None
    k: Optional[float] = None
    len0: Optional[float] = None

    p1: Optional["Node"] = field(default=None, init=False, repr=False)
    p2: Optional["Node"] = field(default=None, init=False, repr=False)
    _k: float = field(default=0.0, init=False, repr=False)
    _len0: float = field(default=0.0, init=False, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Spring":
        return cls(
            id=data.get("id"),
            idloc=data.get("idloc"),
            p1_id=data.get("p1"),
            p2_id=data.get("p2"),
            k=data.get("k"),
            len0=data.get("len0"),
        )

    def validate(self, model: "Model", idx: int) -> List[Message]:
        msgs = []
        if not self.id:
            msgs.append(Message("W_ELEM_ID_MISSING", {"elemtype": "spring", "idx": idx}))

        for attr in ("p1", "p2"):
            ref = self._node_ref(model, idx, attr, getattr(self, attr + "_id"))
            if isinstance(ref, Message):
                return msgs + [ref]
            setattr(self, attr, ref)

        if self.k is not None and abs(self.k) < model.config.eps:
            return msgs + [Message("E_SPRING_RATE_INVALID", {"id": self.id, "val": self.k})]
        return msgs

    def init(self, model: "Model") -> None:
        super().init(model)
        self._k = model.units.from_N_m(self.k or 0.01)
        self._len0 = self.len0 if self.len0 is not None else self.length

    @property
    def length(self) -> float:
        return math.hypot(self.p2.x - self.p1.x, self.p2.y - self.p1.y)

    @property
    def w(self) -> float:
        return math.atan2(self.p2.y - self.p1.y, self.p2.x - self.p1.x)

    @property
    def force(self) -> float:
        """Spring force in model units, positive when stretched."""
        return self._k * (self.length - self._len0)

    @property
    def force_abs(self) -> float:
        return self.force

    @property
    def energy(self) -> float:
        return 0.5 * self._k * (self.length - self._len0) ** 2

    def apply(self) -> None:
        f, w = self.force, self.w
        Qx, Qy = f * math.cos(w), f * math.sin(w)
        self.p1.Qx += Qx
        self.p1.Qy += Qy
        self.p2.Qx -= Qx
        self.p2.Qy -= Qy

    def depends_on(self, elem: object) -> bool:
        return elem is not None and (self.p1 is elem or self.p2 is elem)

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type, "id": self.id, "p1": self.p1_id, "p2": self.p2_id}
        if self.k is not None:
            data["k"] = self.k
        if self.len0 is not None:
            data["len0"] = self.len0
        if self.idloc is not None:
            data["idloc"] = self.idloc
        return data

    def draw(self, renderer: "Renderer") -> None:
        renderer.spring(self.id, self.p1.x, self.p1.y, self.p2.x, self.p2.y)
