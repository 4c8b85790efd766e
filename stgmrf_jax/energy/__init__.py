# stgmrf_jax/energy/__init__.py
from __future__ import annotations

from .base import EnergyTerm
from .gmrf import (
    precision_logdet,
    quadratic_form,
    gmrf_neg_log_density,
    scaled_gmrf_neg_log_density,
)

__all__ = [
    "EnergyTerm",
    "precision_logdet",
    "quadratic_form",
    "gmrf_neg_log_density",
    "scaled_gmrf_neg_log_density",
]
