"""Validation messages.

A message identifier starts with ``E`` for fatal errors and ``W`` for
warnings. Validation never raises; messages are collected by the model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

MESSAGES_EN = {
    # Logical warnings
    "W_CSTR_NODES_COINCIDE": "Warning: Nodes '{p1}' and '{p2}' of constraint '{id}' coincide.",
    "W_ELEM_ID_MISSING": "{elemtype} with index {idx} should have an id defined.",
    "W_CSTR_RATIO_IGNORED": "Ratio value of driven {sub} constraint '{id}' with reference to '{reftype}' constraint '{ref}' ignored.",
    # Logical errors
    "E_ELEM_ID_MISSING": "{elemtype} with index {idx} must have an id defined.",
    "E_ELEM_ID_AMBIGIOUS": "{elemtype} id '{id}' is ambigious.",
    "E_ELEM_REF_MISSING": "{elemtype} {label} must have a {reftype} reference '{name}' defined.",
    "E_ELEM_INVALID_REF": "{reftype} reference '{name}' of {elemtype} {label} is invalid.",
    "E_NODE_MASS_TOO_SMALL": "Node's (id='{id}') mass of {m} is too small.",
    "E_CSTR_NODE_MISSING": "{loc} node '{p}' of constraint (id='{id}') is missing.",
    "E_CSTR_NODE_NOT_EXISTS": "{loc} node '{p}':'{nodeId}' of constraint '{id}' does not exist.",
    "E_CSTR_REF_NOT_EXISTS": "Reference to '{ref}' in '{sub}' of constraint '{id}' does not exist.",
    "E_CSTR_DRIVEN_REF_TO_FREE": "Driven {sub} constraint of '{id}' must not reference free {reftype} of constraint '{ref}'.",
    "E_CSTR_REF_CYCLE": "Reference in '{sub}' of constraint '{id}' closes a cycle through {cycle}.",
    "E_CSTR_DRIVE_INVALID": "Drive of {sub} constraint '{id}' has invalid {param} '{val}'.",
    "E_FORCE_VALUE_INVALID": "Force value '{val}' of load '{id}' is not allowed.",
    "E_SPRING_RATE_INVALID": "Spring rate '{val}' of load '{id}' is not allowed.",
    "E_ASM_POS_FAILED": "Position assembly did not converge within {itr} iterations at t={t:.4f}s.",
}


class _Params(dict):
    def __missing__(self, key):
        return "?"


def elem_label(id: Optional[str], idx: Optional[int]) -> str:
    """Quoted id if present, bracketed index otherwise."""
    return f"'{id}'" if id else f"[{idx}]"


@dataclass(frozen=True)
class Message:
    """A validation or runtime message with its template parameters."""

    mid: str
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def fatal(self) -> bool:
        return self.mid.startswith("E")

    @property
    def severity(self) -> str:
        return "error" if self.fatal else "warning"

    @property
    def text(self) -> str:
        template = MESSAGES_EN.get(self.mid)
        if template is None:
            return self.mid
        return template.format_map(_Params(self.params))

    def as_dict(self) -> Dict[str, Any]:
        return {"mid": self.mid, "severity": self.severity, "text": self.text, **self.params}

    def __str__(self) -> str:
        return f"{self.mid}: {self.text}"
