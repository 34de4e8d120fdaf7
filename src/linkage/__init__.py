"""Planar linkage simulator: nodes, constraints and loads advanced by impulse-based correction."""

from .config import SolverConfig
from .constraint import Constraint, SubConstraint, SubKind
from .drive import Drive
from .load import Force, Load, Spring
from .messages import Message
from .model import Model
from .node import Node
from .render import CommandRenderer, Renderer
from .simulate import Frame, Results, simulate
from .units import UnitScale

__all__ = [
    "SolverConfig",
    "Node",
    "Constraint",
    "SubConstraint",
    "SubKind",
    "Drive",
    "Load",
    "Force",
    "Spring",
    "Message",
    "Model",
    "Renderer",
    "CommandRenderer",
    "Frame",
    "Results",
    "simulate",
    "UnitScale",
]
