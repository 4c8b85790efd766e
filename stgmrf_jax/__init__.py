# stgmrf_jax/__init__.py
"""
stgmrf-jax: differentiable joint likelihood of a spatiotemporal SPDE/GMRF
count model.

Typical use:

    model = ModelData.from_arrays(n_s, n_t, a_s, c_i, s_i, t_i, M0, M1, M2)
    energy = SpatioTemporalEnergy(model)
    jnll = energy(params, fields)                 # scalar objective
    result = energy.evaluate(params, fields)      # breakdown + derived quantities
"""
from .core import (
    MeshBasis,
    Observations,
    ModelData,
    Hyperparameters,
    LatentFields,
)
from .exceptions import STGMRFError, ValidationError, ObservationIndexError
from .model import (
    EngineCFG,
    EvaluationResult,
    SpatioTemporalEnergy,
    evaluate,
)
from .report import derived_quantities, derived_standard_errors
from .spde import assemble_precision

__version__ = "0.1.0"

__all__ = [
    "MeshBasis",
    "Observations",
    "ModelData",
    "Hyperparameters",
    "LatentFields",
    "STGMRFError",
    "ValidationError",
    "ObservationIndexError",
    "EngineCFG",
    "EvaluationResult",
    "SpatioTemporalEnergy",
    "evaluate",
    "derived_quantities",
    "derived_standard_errors",
    "assemble_precision",
]
