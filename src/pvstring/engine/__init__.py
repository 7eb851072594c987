"""Engine package: string sizing, compliance and system aggregation."""

from .compliance import DEFAULT_POLICY, CompliancePolicy, evaluate_string, evaluate_system
from .sizing import size_strings
from .system import aggregate_system, design_system

__all__ = [
    "CompliancePolicy",
    "DEFAULT_POLICY",
    "size_strings",
    "evaluate_string",
    "evaluate_system",
    "aggregate_system",
    "design_system",
]
