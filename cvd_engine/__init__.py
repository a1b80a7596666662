"""
CVD COMMISSION ENGINE
Commission sur Ventes Directes: palier commissions and fiscal invoice numbering
"""

from .allocator import FiscalInvoiceAllocator
from .calculators import EstimateCalculator, PalierCommissionCalculator
from .models import CommissionStatement, SaleEvent
from .processor import CommissionProcessor
from .schedule import DEFAULT_SCHEDULE, CommissionSchedule

__all__ = [
    'CommissionProcessor',
    'PalierCommissionCalculator',
    'EstimateCalculator',
    'FiscalInvoiceAllocator',
    'CommissionSchedule',
    'CommissionStatement',
    'SaleEvent',
    'DEFAULT_SCHEDULE',
]
