"""Panel electrical model."""

from .electricals import DEFAULT_ESTIMATOR, EstimatorParams, estimate_electricals, resolve_electricals

__all__ = ["DEFAULT_ESTIMATOR", "EstimatorParams", "estimate_electricals", "resolve_electricals"]
