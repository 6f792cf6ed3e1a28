"""AIR — assertion intermediate representation and verification-condition engine."""

__version__ = "0.1.0"

from air.context import Context
from air.config import AirConfig, load_config
from air.errors import UsageError
from air.ast_nodes import ValidityResult, Valid, Invalid, SolverError

__all__ = [
    "Context",
    "AirConfig",
    "load_config",
    "UsageError",
    "ValidityResult",
    "Valid",
    "Invalid",
    "SolverError",
]
