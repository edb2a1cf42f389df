from __future__ import annotations

from .calculator.base import PayrollCalculator
from .calculator.efficiency_weighted_calculator import EfficiencyWeightedCalculator
from .calculator.standard_calculator import StandardPayrollCalculator

_CALCULATORS = {
    "standard": StandardPayrollCalculator,
    "efficiency_weighted": EfficiencyWeightedCalculator,
}


def calculator_for(name: str) -> PayrollCalculator:
    """Factory Pattern: pick the pay calculator named in settings."""
    try:
        return _CALCULATORS[(name or "standard").strip().lower()]()
    except KeyError:
        raise ValueError(f"Unknown pay calculator: {name!r}")
