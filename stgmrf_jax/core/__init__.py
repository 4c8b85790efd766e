# stgmrf_jax/core/__init__.py
from .data import MeshBasis, Observations, ModelData
from .params import Hyperparameters, LatentFields, FIXED_EFFECT_NAMES

__all__ = [
    "MeshBasis",
    "Observations",
    "ModelData",
    "Hyperparameters",
    "LatentFields",
    "FIXED_EFFECT_NAMES",
]
