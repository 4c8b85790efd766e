# stgmrf_jax/spde/__init__.py
from .precision import (
    precision_coefficients,
    assemble_precision,
    precision_scipy,
    sparse_logdet,
)

__all__ = [
    "precision_coefficients",
    "assemble_precision",
    "precision_scipy",
    "sparse_logdet",
]
