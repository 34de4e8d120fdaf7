from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Literal, Mapping, Tuple

# =============================================================================
# NUMERICAL AND PHYSICAL DEFAULTS
# =============================================================================

ToleranceProfile = Literal["low", "medium", "high"]


class NumericalConfig:
    """Configuration for numerical stability and precision."""

    # Minimal float difference to 1.0 (single precision)
    EPS = 1.19209e-07

    # Length tolerance per profile, in model units
    LEN_TOL = {"low": 1e-5, "medium": 1e-3, "high": 0.1}

    VEL_TOL = 0.01  # model units / s

    # Ceiling for position and velocity assembly sweeps
    ASM_ITR_MAX = 512


class PhysicalConstants:
    """Physical constants used in the simulation."""

    GRAVITY = (0.0, -10.0)  # m/s²

    # Metres per model unit (1 unit = 1 cm)
    METERS_PER_UNIT = 0.01


class TimerDefaults:
    """Timer settings of a freshly created model."""

    DT = 1 / 60  # s
    SLEEP_MIN = 1.0  # s before sleep detection kicks in


# =============================================================================
# SOLVER CONFIGURATION
# =============================================================================


@dataclass
class SolverConfig:
    """Settings handed to a Model at construction.

    Each model owns its configuration; nothing here is shared between models.
    """

    tolerance: ToleranceProfile = "medium"
    vel_tol: float = NumericalConfig.VEL_TOL
    asm_itr_max: int = NumericalConfig.ASM_ITR_MAX
    dt: float = TimerDefaults.DT
    sleep_min: float = TimerDefaults.SLEEP_MIN
    m_u: float = PhysicalConstants.METERS_PER_UNIT
    gravity: Tuple[float, float] = field(default_factory=lambda: PhysicalConstants.GRAVITY)
    warm_start: bool = True
    eps: float = NumericalConfig.EPS

    def __post_init__(self):
        if self.tolerance not in NumericalConfig.LEN_TOL:
            raise ValueError(f"Unknown tolerance profile '{self.tolerance}'. Must be one of {sorted(NumericalConfig.LEN_TOL)}")
        if self.asm_itr_max < 1:
            raise ValueError("asm_itr_max must be at least 1")
        if self.dt <= 0:
            raise ValueError("dt must be positive")
        if self.m_u <= 0:
            raise ValueError("m_u must be positive")
        self.gravity = (float(self.gravity[0]), float(self.gravity[1]))

    @property
    def len_tol(self) -> float:
        """Length tolerance of the selected profile."""
        return NumericalConfig.LEN_TOL[self.tolerance]

    def replace(self, **changes: Any) -> "SolverConfig":
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update(changes)
        return SolverConfig(**values)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "SolverConfig":
        """Build a config from a plain mapping.

        Keys are matched case-insensitively and may carry a ``SOLVER_`` prefix,
        so a Flask ``app.config`` can be passed directly.
        """
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in mapping.items():
            name = str(key).lower()
            if name.startswith("solver_"):
                name = name[len("solver_") :]
            if name in known:
                values[name] = value
        return cls(**values)
