"""
Unit handling for the linkage simulator.

Mechanisms are modelled in *model units*: lengths in user units (``m_u``
metres each, centimetres by default), masses in kilograms and time in
seconds. Forces, moments and energies therefore carry a length scale that
has to be removed before display. ``UnitScale`` performs the model <-> SI
step; the display tables then convert SI values into the preferred metric
or imperial unit.
"""

from dataclasses import dataclass
from typing import Dict, Literal

from .config import PhysicalConstants

UnitSystem = Literal["metric", "imperial"]

UNIT_SYSTEMS = ("metric", "imperial")


@dataclass
class UnitConversion:
    """Unit conversion factor and display information."""

    factor: float  # Conversion factor to SI base unit
    symbol: str  # Unit symbol for display
    precision: int = 3  # Decimal places for display


class UnitScale:
    """Conversions between model units, SI units and display units.

    Every model owns one instance built from its ``SolverConfig.m_u``.
    """

    def __init__(self, m_u: float = PhysicalConstants.METERS_PER_UNIT, system: UnitSystem = "metric"):
        if system not in UNIT_SYSTEMS:
            raise ValueError(f"Invalid unit system '{system}'. Must be 'metric' or 'imperial'")
        self.m_u = m_u
        self.system: UnitSystem = system
        self._conversions = self._setup_conversions()

    # --- model units <-> SI ------------------------------------------------

    def to_m(self, x: float) -> float:
        return x * self.m_u

    def from_m(self, x: float) -> float:
        return x / self.m_u

    def to_N(self, x: float) -> float:
        return x * self.m_u

    def from_N(self, x: float) -> float:
        return x / self.m_u

    def to_Nm(self, x: float) -> float:
        return x * self.m_u * self.m_u

    def from_Nm(self, x: float) -> float:
        return x / self.m_u / self.m_u

    def to_N_m(self, x: float) -> float:
        # N/m = kg/s², no length scale
        return x

    def from_N_m(self, x: float) -> float:
        return x

    def to_J(self, x: float) -> float:
        return self.to_Nm(x)

    def from_J(self, x: float) -> float:
        return self.from_Nm(x)

    # --- SI <-> display -----------------------------------------------------

    def _setup_conversions(self) -> Dict[str, Dict[str, UnitConversion]]:
        """Setup conversion factors for all unit types to SI base units."""
        return {
            "length": {
                "m": UnitConversion(1.0, "m", 3),
                "mm": UnitConversion(0.001, "mm", 1),
                "cm": UnitConversion(0.01, "cm", 2),
                "ft": UnitConversion(0.3048, "ft", 3),
                "in": UnitConversion(0.0254, "in", 2),
            },
            "velocity": {
                "m/s": UnitConversion(1.0, "m/s", 3),
                "ft/s": UnitConversion(0.3048, "ft/s", 3),
            },
            "acceleration": {
                "m/s²": UnitConversion(1.0, "m/s²", 2),
                "ft/s²": UnitConversion(0.3048, "ft/s²", 2),
            },
            "force": {
                "N": UnitConversion(1.0, "N", 2),
                "kN": UnitConversion(1000.0, "kN", 3),
                "lb": UnitConversion(4.44822, "lb", 3),
            },
            "moment": {
                "N·m": UnitConversion(1.0, "N·m", 3),
                "lb·ft": UnitConversion(1.35582, "lb·ft", 3),
            },
            "energy": {
                "J": UnitConversion(1.0, "J", 4),
                "ft·lb": UnitConversion(1.35582, "ft·lb", 4),
            },
            "spring_rate": {
                "N/m": UnitConversion(1.0, "N/m", 3),
                "lb/in": UnitConversion(175.127, "lb/in", 3),
            },
            "mass": {
                "kg": UnitConversion(1.0, "kg", 3),
                "lb": UnitConversion(0.453592, "lb", 3),
            },
        }

    def get_conversion(self, unit_type: str, unit: str) -> UnitConversion:
        """Get conversion information for a specific unit."""
        return self._conversions[unit_type][unit]

    def get_preferred_unit(self, unit_type: str) -> str:
        """Get the preferred unit for display in the current system."""
        metric = self.system == "metric"
        preferred_units = {
            "length": "mm" if metric else "in",
            "velocity": "m/s" if metric else "ft/s",
            "acceleration": "m/s²" if metric else "ft/s²",
            "force": "N" if metric else "lb",
            "moment": "N·m" if metric else "lb·ft",
            "energy": "J" if metric else "ft·lb",
            "spring_rate": "N/m" if metric else "lb/in",
            "mass": "kg" if metric else "lb",
        }
        return preferred_units[unit_type]

    def convert_to_display(self, value: float, unit_type: str) -> tuple[float, str]:
        """Convert a value from SI base units to the preferred display unit.

        Returns:
            Tuple of (display_value, unit_symbol)
        """
        conversion = self.get_conversion(unit_type, self.get_preferred_unit(unit_type))
        return value / conversion.factor, conversion.symbol

    def convert_from_display(self, value: float, unit_type: str) -> float:
        """Convert a value from the preferred display unit to SI base units."""
        conversion = self.get_conversion(unit_type, self.get_preferred_unit(unit_type))
        return value * conversion.factor

    def format_value(self, value: float, unit_type: str) -> str:
        """Format an SI value with its preferred display unit."""
        display_value, unit_symbol = self.convert_to_display(value, unit_type)
        conversion = self.get_conversion(unit_type, self.get_preferred_unit(unit_type))
        return f"{display_value:.{conversion.precision}f} {unit_symbol}"

    def parse_value(self, text: str, unit_type: str) -> float:
        """Parse a value with optional unit symbol into SI base units.

        Raises:
            ValueError: If text cannot be parsed
        """
        text = text.strip()

        # Longest symbols first so that "N·m" is not taken for "N"
        available_units = self._conversions[unit_type]
        sorted_units = sorted(available_units.items(), key=lambda x: len(x[1].symbol), reverse=True)

        unit_symbol = None
        for unit, conversion in sorted_units:
            if text.endswith(conversion.symbol):
                unit_symbol = unit
                break

        if unit_symbol is None:
            unit_symbol = self.get_preferred_unit(unit_type)
            value_text = text
        else:
            value_text = text[: -len(self.get_conversion(unit_type, unit_symbol).symbol)].strip()

        try:
            value = float(value_text)
        except ValueError:
            raise ValueError(f"Invalid value format: {text}")
        return value * self.get_conversion(unit_type, unit_symbol).factor

    def conversion_info(self) -> Dict[str, Dict[str, object]]:
        """Preferred display unit, factor and precision per quantity."""
        info = {}
        for unit_type in self._conversions:
            conversion = self.get_conversion(unit_type, self.get_preferred_unit(unit_type))
            info[unit_type] = {"symbol": conversion.symbol, "factor": conversion.factor, "precision": conversion.precision}
        return info
