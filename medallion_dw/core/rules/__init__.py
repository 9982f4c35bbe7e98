"""
Check configuration loading and the validation gate.
"""

from .check_config import CheckConfigBuilder, CheckConfigLoader
from .validation_gate import DEFAULT_CHECKS_PATH, ValidationGate

__all__ = [
    "CheckConfigBuilder",
    "CheckConfigLoader",
    "DEFAULT_CHECKS_PATH",
    "ValidationGate",
]
