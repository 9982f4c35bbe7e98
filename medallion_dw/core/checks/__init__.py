"""
Validation gate checks.

Provides checks for key uniqueness, untrimmed text, value ranges, date
ordering, categorical domains, measure consistency and referential integrity.
"""

from .base_check import BaseCheck, CheckContext
from .key_checks import NotNullCheck, UniqueKeyCheck
from .measure_check import MeasureConsistencyCheck
from .range_checks import DateOrderCheck, DateRangeCheck, NonNegativeCheck
from .referential_check import ReferentialIntegrityCheck
from .text_checks import DomainCheck, UntrimmedTextCheck

__all__ = [
    "BaseCheck",
    "CheckContext",
    "UniqueKeyCheck",
    "NotNullCheck",
    "UntrimmedTextCheck",
    "DomainCheck",
    "NonNegativeCheck",
    "DateOrderCheck",
    "DateRangeCheck",
    "MeasureConsistencyCheck",
    "ReferentialIntegrityCheck",
]
