"""
Mechanism model: owns nodes, constraints and loads, validates and
cross-resolves them and advances the simulation in fixed time steps.

One tick runs

    pre   clear node forces, apply gravity and loads, predict positions,
          warm start constraints, remove position drift
    itr   correct velocities
    post  commit velocity increments and accumulate constraint impulses
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from .config import SolverConfig
from .constraint import Constraint
from .load import Load
from .logging_utils import get_logger
from .messages import Message, elem_label
from .node import Node
from .render import Renderer
from .units import UnitScale

logger = get_logger(__name__)


@dataclass
class Gravity:
    """Gravity vector in m/s² and whether it acts."""

    x: float = 0.0
    y: float = -10.0
    active: bool = False

    @classmethod
    def parse(cls, value: Any, default: Tuple[float, float]) -> "Gravity":
        if isinstance(value, Mapping):
            return cls(float(value.get("x", default[0])), float(value.get("y", default[1])), bool(value.get("active", True)))
        return cls(default[0], default[1], bool(value))

    def as_json_value(self, default: Tuple[float, float]) -> Any:
        if (self.x, self.y) == tuple(default):
            return True if self.active else None
        return {"x": self.x, "y": self.y, "active": self.active}


class Model:
    """A planar mechanism.

    Build one from declarative data with ``Model.from_dict`` and call
    ``init()`` before ticking. Validation never raises; check ``valid`` and
    ``messages`` afterwards.
    """

    def __init__(
        self,
        nodes: Optional[List[Node]] = None,
        constraints: Optional[List[Constraint]] = None,
        loads: Optional[List[Load]] = None,
        gravity: Any = False,
        id: Optional[str] = None,
        title: Optional[str] = None,
        config: Optional[SolverConfig] = None,
    ):
        self.config = config or SolverConfig()
        self.units = UnitScale(self.config.m_u)
        self.id = id
        self.title = title
        self.nodes: List[Node] = list(nodes or [])
        self.constraints: List[Constraint] = list(constraints or [])
        self.loads: List[Load] = list(loads or [])
        self.gravity = Gravity.parse(gravity, self.config.gravity)

        # timer
        self.t = 0.0
        self.dt = self.config.dt
        self.sleep_min = self.config.sleep_min

        # state
        self.valid = True
        self.messages: List[Message] = []
        self.itrpos = 0
        self.itrvel = 0
        self._init_order: List[Constraint] = []
        self._setup_failed = False

    # =========================================================================
    # CONSTRUCTION
    # =========================================================================

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], config: Optional[SolverConfig] = None) -> "Model":
        if not isinstance(data, Mapping):
            raise ValueError("model must be an object")
        return cls(
            nodes=[Node.from_dict(n) for n in data.get("nodes") or []],
            constraints=[Constraint.from_dict(c) for c in data.get("constraints") or []],
            loads=[Load.create(ld) for ld in data.get("loads") or []],
            gravity=data.get("gravity", False),
            id=data.get("id"),
            title=data.get("title"),
            config=config,
        )

    @classmethod
    def from_json(cls, text: str, config: Optional[SolverConfig] = None) -> "Model":
        return cls.from_dict(json.loads(text), config)

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.id is not None:
            data["id"] = self.id
        if self.title:
            data["title"] = self.title
        gravity = self.gravity.as_json_value(self.config.gravity)
        if gravity is not None:
            data["gravity"] = gravity
        data["nodes"] = [node.as_dict() for node in self.nodes]
        if self.constraints:
            data["constraints"] = [c.as_dict() for c in self.constraints]
        if self.loads:
            data["loads"] = [load.as_dict() for load in self.loads]
        return data

    def as_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.as_dict(), indent=indent)

    # =========================================================================
    # MESSAGES
    # =========================================================================

    def _notify(self, msgs: List[Message]) -> bool:
        """Record messages; returns False if one of them is fatal."""
        ok = True
        for msg in msgs:
            self.messages.append(msg)
            if msg.fatal:
                logger.error("%s", msg)
                self.valid = ok = False
            else:
                logger.warning("%s", msg)
        return ok

    @property
    def msg(self) -> Optional[Message]:
        """Most recent message."""
        return self.messages[-1] if self.messages else None

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    def init(self) -> "Model":
        """Validate and cross-resolve all elements, then initialize them."""
        self.valid = True
        self.messages = []
        self._init_order = []
        failed: Set[int] = set()

        for idx, node in enumerate(self.nodes):
            if self._notify(node.validate(self, idx)):
                node.init()
            else:
                failed.add(id(node))

        candidates = []
        for idx, constraint in enumerate(self.constraints):
            constraint.initialized = False
            if not self._notify(constraint.validate(self, idx)):
                failed.add(id(constraint))
            elif id(constraint.p1) in failed or id(constraint.p2) in failed:
                failed.add(id(constraint))
            else:
                candidates.append(constraint)

        for constraint in self._dependency_order(candidates, failed):
            constraint.init(self)
            self._init_order.append(constraint)

        for idx, load in enumerate(self.loads):
            load.initialized = False
            if self._notify(load.validate(self, idx)) and not any(load.depends_on(e) for e in self._failed_elements(failed)):
                load.init(self)

        self._setup_failed = not self.valid
        logger.info("Model '%s' initialized: valid=%s dof=%d", self.id, self.valid, self.dof)
        return self

    def _failed_elements(self, failed: Set[int]) -> List[Any]:
        return [e for e in (*self.nodes, *self.constraints) if id(e) in failed]

    def _dependency_order(self, candidates: List[Constraint], failed: Set[int]) -> List[Constraint]:
        """Order constraints so that referenced ones come first.

        Constraints on a reference cycle get ``E_CSTR_REF_CYCLE``; they and
        everything depending on a failed constraint are left out.
        """
        visiting, done = set(), set()
        order: List[Constraint] = []

        def visit(constraint: Constraint, path: List[Constraint]) -> None:
            visiting.add(id(constraint))
            path.append(constraint)
            for sub in constraint.subs():
                ref = sub.ref.constraint if sub.ref is not None else None
                if ref is None or id(ref) in done:
                    continue
                if id(ref) in visiting:
                    cycle = path[next(i for i, c in enumerate(path) if c is ref) :]
                    names = " -> ".join(str(c.id) for c in cycle + [ref])
                    self._notify([Message("E_CSTR_REF_CYCLE", {"id": constraint.id, "sub": sub.name, "cycle": names})])
                    failed.update(id(c) for c in cycle)
                elif id(ref) not in failed:
                    visit(ref, path)
            path.pop()
            visiting.discard(id(constraint))
            done.add(id(constraint))
            order.append(constraint)

        for constraint in candidates:
            if id(constraint) not in done:
                visit(constraint, [])

        result = []
        ready: Set[int] = set()
        for constraint in order:
            if id(constraint) in failed:
                continue
            if all(id(ref) in ready for ref in constraint.references()):
                ready.add(id(constraint))
                result.append(constraint)
            else:
                failed.add(id(constraint))
                logger.debug("Constraint '%s' skipped, a referenced constraint failed", constraint.id)
        return result

    # =========================================================================
    # SIMULATION
    # =========================================================================

    @property
    def _active_constraints(self) -> List[Constraint]:
        return [c for c in self.constraints if c.initialized]

    @property
    def _active_loads(self) -> List[Load]:
        return [load for load in self.loads if load.initialized]

    def reset(self) -> "Model":
        """Return to the declared pose and validate all elements again."""
        self.t = 0.0
        self.dt = self.config.dt
        self.itrpos = self.itrvel = 0
        for node in self.nodes:
            node.reset()
        for constraint in self._init_order:
            constraint.reset()
        for load in self.loads:
            load.reset()
        return self.init()

    def pose(self) -> bool:
        """Assemble positions only; restores validity on success."""
        if self._setup_failed:
            return False
        self.valid = True
        return self.assemble_positions()

    def tick(self, dt: Optional[float] = None) -> "Model":
        """Advance by one time step; no-op while the model is invalid."""
        if not self.valid:
            return self
        if dt is not None and dt <= 0:
            raise ValueError(f"Time step must be positive, got {dt}")
        self.dt = dt if dt is not None else self.config.dt
        self.t += self.dt
        return self.pre().itr().post()

    def stop(self) -> "Model":
        for node in self.nodes:
            node.stop()
        return self

    def apply_loads(self) -> "Model":
        for load in self._active_loads:
            load.apply()
        return self

    def pre(self) -> "Model":
        dt = self.dt
        for node in self.nodes:
            node.clear()
        if self.gravity.active:
            gx, gy = self.units.from_m(self.gravity.x), self.units.from_m(self.gravity.y)
            for node in self.nodes:
                node.apply_gravity(gx, gy)
        self.apply_loads()
        for node in self.nodes:
            node.predict(dt)

        constraints = self._active_constraints
        if not self.config.warm_start:
            for constraint in constraints:
                constraint.lambda_r = constraint.lambda_w = 0.0
        for constraint in constraints:
            constraint.pre(dt)
        self.assemble_positions()
        return self

    def itr(self) -> "Model":
        if self.valid:
            self.assemble_velocities()
        return self

    def post(self) -> "Model":
        for node in self.nodes:
            node.finalize(self.dt, self.config.vel_tol)
        for constraint in self._active_constraints:
            constraint.post(self.dt)
        return self

    def pos_step(self) -> bool:
        valid = True
        for constraint in self._active_constraints:
            valid = constraint.pos_step() and valid
        return valid

    def vel_step(self) -> bool:
        valid = True
        for constraint in self._active_constraints:
            valid = constraint.vel_step(self.dt) and valid
        return valid

    def assemble_positions(self) -> bool:
        valid = False
        self.itrpos = 0
        while not valid and self.itrpos < self.config.asm_itr_max:
            self.itrpos += 1
            valid = self.pos_step()
        if not valid:
            self._notify([Message("E_ASM_POS_FAILED", {"itr": self.itrpos, "t": self.t})])
        return valid

    def assemble_velocities(self) -> bool:
        valid = False
        self.itrvel = 0
        while not valid and self.itrvel < self.config.asm_itr_max:
            self.itrvel += 1
            valid = self.vel_step()
        if not valid:
            logger.warning("Velocity assembly did not converge within %d iterations at t=%.4fs", self.itrvel, self.t)
        return valid

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def dof(self) -> int:
        dof = sum(node.dof for node in self.nodes)
        for constraint in self.constraints:
            dof -= 2 - constraint.dof
        return dof

    @property
    def has_gravity(self) -> bool:
        return self.gravity.active

    @property
    def has_loads(self) -> bool:
        return self.has_gravity or bool(self.loads)

    @property
    def is_sleeping(self) -> bool:
        return self.t > self.sleep_min and all(node.is_sleeping for node in self.nodes)

    @property
    def active_drive_count(self) -> int:
        return sum(c.active_drive_count(self.t, self.dt) for c in self._active_constraints)

    @property
    def has_active_drives(self) -> bool:
        return self.active_drive_count > 0

    @property
    def is_active(self) -> bool:
        return self.active_drive_count > 0 or self.dof > 0 or (self.has_loads and not self.is_sleeping)

    @property
    def input_controlled_drives(self) -> List[Tuple[Constraint, str]]:
        return [(c, sub.name) for c in self.constraints for sub in c.subs() if sub.is_input]

    @property
    def energy(self) -> float:
        """Kinetic, gravitational and spring energy in model units."""
        gravity = None
        if self.gravity.active:
            gravity = (self.units.from_m(self.gravity.x), self.units.from_m(self.gravity.y))
        e = sum(node.energy(gravity) for node in self.nodes)
        return e + sum(load.energy for load in self._active_loads)

    @property
    def cog(self) -> Optional[Tuple[float, float]]:
        """Centre of gravity of all non-base nodes."""
        m = x = y = 0.0
        for node in self.nodes:
            if not node.is_base:
                m += node.mass
                x += node.x * node.mass
                y += node.y * node.mass
        if not m:
            return None
        return (x / m, y / m)

    def set_input(self, constraint_id: str, sub: str, value: float) -> None:
        constraint = self.constraint_by_id(constraint_id)
        if constraint is None:
            raise KeyError(constraint_id)
        constraint.set_input(sub, value)

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def node_by_id(self, id: Optional[str]) -> Optional[Node]:
        return next((node for node in self.nodes if node.id == id), None)

    def constraint_by_id(self, id: Optional[str]) -> Optional[Constraint]:
        return next((c for c in self.constraints if c.id == id), None)

    def load_by_id(self, id: Optional[str]) -> Optional[Load]:
        return next((load for load in self.loads if load.id == id), None)

    def element_by_id(self, id: Optional[str]) -> Any:
        elem = self.node_by_id(id) or self.constraint_by_id(id) or self.load_by_id(id)
        if elem is None and id == "model":
            return self
        return elem

    # =========================================================================
    # STRUCTURAL EDITS
    # =========================================================================

    def has_dependents(self, elem: object) -> bool:
        return any(c.depends_on(elem) for c in self.constraints) or any(load.depends_on(elem) for load in self.loads)

    def dependents_of(self, elem: object) -> Dict[str, list]:
        """Constraints and loads depending on ``elem``, transitively; never ``elem`` itself."""
        deps: Dict[str, list] = {"constraints": [], "loads": []}
        seen = {id(elem)}
        pending = [elem]
        while pending:
            current = pending.pop()
            for constraint in self.constraints:
                if id(constraint) not in seen and constraint.depends_on(current):
                    seen.add(id(constraint))
                    deps["constraints"].append(constraint)
                    pending.append(constraint)
            for load in self.loads:
                if id(load) not in seen and load.depends_on(current):
                    seen.add(id(load))
                    deps["loads"].append(load)
        return deps

    def _purge(self, deps: Dict[str, list]) -> None:
        for constraint in deps["constraints"]:
            self._discard_constraint(constraint)
        for load in deps["loads"]:
            self.loads.remove(load)

    def _discard_constraint(self, constraint: Constraint) -> None:
        self.constraints.remove(constraint)
        if constraint in self._init_order:
            self._init_order.remove(constraint)

    def add_node(self, node: Node) -> List[Message]:
        self.nodes.append(node)
        msgs = node.validate(self, len(self.nodes) - 1)
        if self._notify(msgs):
            node.init()
        else:
            self._setup_failed = True
        return msgs

    def add_constraint(self, constraint: Constraint) -> List[Message]:
        self.constraints.append(constraint)
        constraint.initialized = False
        msgs = constraint.validate(self, len(self.constraints) - 1)
        if any(m.fatal for m in msgs):
            self._notify(msgs)
            self._setup_failed = True
            return msgs
        label = elem_label(constraint.id, len(self.constraints) - 1)
        for sub in constraint.subs():
            ref = sub.ref.constraint if sub.ref is not None else None
            if ref is constraint:
                msgs.append(Message("E_CSTR_REF_CYCLE", {"id": constraint.id, "sub": sub.name, "cycle": f"{constraint.id} -> {constraint.id}"}))
            elif ref is not None and not ref.initialized:
                msgs.append(Message("E_ELEM_INVALID_REF", {"elemtype": "constraint", "label": label, "reftype": "constraint", "name": ref.id}))
        if self._notify(msgs):
            constraint.init(self)
            self._init_order.append(constraint)
        else:
            self._setup_failed = True
        return msgs

    def add_load(self, load: Load) -> List[Message]:
        self.loads.append(load)
        load.initialized = False
        msgs = load.validate(self, len(self.loads) - 1)
        if self._notify(msgs):
            load.init(self)
        else:
            self._setup_failed = True
        return msgs

    def remove_node(self, node: Node) -> bool:
        if self.has_dependents(node):
            return False
        self.nodes.remove(node)
        return True

    def remove_constraint(self, constraint: Constraint) -> bool:
        if self.has_dependents(constraint):
            return False
        self._discard_constraint(constraint)
        return True

    def remove_load(self, load: Load) -> bool:
        self.loads.remove(load)
        return True

    def purge_node(self, node: Node) -> None:
        self._purge(self.dependents_of(node))
        self.nodes.remove(node)

    def purge_constraint(self, constraint: Constraint) -> None:
        self._purge(self.dependents_of(constraint))
        self._discard_constraint(constraint)

    def purge_load(self, load: Load) -> None:
        self.loads.remove(load)

    # =========================================================================
    # OUTPUT
    # =========================================================================

    def draw(self, renderer: Renderer) -> "Model":
        for constraint in self._active_constraints:
            constraint.draw(renderer)
        for load in self._active_loads:
            load.draw(renderer)
        for node in self.nodes:
            node.draw(renderer)
        return self
