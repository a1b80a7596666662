"""
Calculators Package

Fiscal and preview commission calculators.
"""

from .estimate import EstimateCalculator
from .palier import PalierCommissionCalculator, quantize_money

__all__ = [
    "PalierCommissionCalculator",
    "EstimateCalculator",
    "quantize_money",
]
