# stgmrf_jax/core/data.py
"""
Model definition layer.

Immutable containers for everything that stays fixed across likelihood
evaluations: the SPDE mesh basis and the binned count observations.

Design principle:
  All validation happens here, on the host, when the containers are built.
  Once a ModelData exists, evaluation code can index into it without any
  further checks, and the containers can be shared between threads and
  jitted functions without synchronisation.
"""
from __future__ import annotations

import warnings
from dataclasses import dataclass
from logging import getLogger
from typing import Optional, Sequence, Tuple

import numpy as np
import jax.numpy as jnp
from scipy import sparse

from ..exceptions import ObservationIndexError, ValidationError

logger = getLogger(__name__)


# ============================================================
# Helpers
# ============================================================

def _readonly(a: np.ndarray) -> np.ndarray:
    a = np.array(a, copy=True)
    a.setflags(write=False)
    return a


def _as_csr(M, name: str) -> sparse.csr_matrix:
    """Coerce SciPy sparse, JAX BCOO or dense input to a square CSR matrix."""
    if sparse.issparse(M):
        M = sparse.csr_matrix(M, dtype=np.float64)
    elif hasattr(M, "todense") and hasattr(M, "indices"):
        # jax.experimental.sparse.BCOO
        M = sparse.csr_matrix(np.asarray(M.todense(), dtype=np.float64))
    else:
        dense = np.asarray(M, dtype=np.float64)
        if dense.ndim != 2:
            raise ValidationError(
                f"Mesh matrix {name} must be two-dimensional",
                expected="shape (n_s, n_s)",
                got=f"shape {dense.shape}",
            )
        M = sparse.csr_matrix(dense)

    if M.shape[0] != M.shape[1]:
        raise ValidationError(
            f"Mesh matrix {name} must be square",
            expected="shape (n_s, n_s)",
            got=f"shape {M.shape}",
        )
    return M


def _max_asymmetry(M: sparse.csr_matrix) -> float:
    diff = abs(M - M.T)
    if diff.nnz == 0:
        return 0.0
    scale = max(float(abs(M).max()), 1.0)
    return float(diff.max()) / scale


def _as_index_array(values, name: str) -> np.ndarray:
    arr = np.asarray(values)
    if arr.ndim != 1:
        raise ValidationError(
            f"{name} must be a one-dimensional sequence",
            got=f"shape {arr.shape}",
        )
    if arr.size == 0:
        return arr.astype(np.int64)
    if not np.issubdtype(arr.dtype, np.integer):
        try:
            as_float = arr.astype(np.float64)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must contain integers", got=f"dtype {arr.dtype}")
        if not np.all(np.isfinite(as_float)) or np.any(as_float != np.round(as_float)):
            raise ValidationError(
                f"{name} must contain integers",
                got="non-integer or non-finite entries",
            )
        arr = as_float
    return arr.astype(np.int64)


def _check_lengths(lengths: dict) -> None:
    """Every entry of `lengths` must equal lengths["counts"]."""
    n_i = lengths["counts"]
    for name, n in lengths.items():
        if n != n_i:
            raise ValidationError(
                "Observation sequences differ in length",
                expected=f"len({name}) == len(counts) == {n_i}",
                got=f"len({name}) == {n}",
            )


def _parse_counts(counts) -> Tuple[np.ndarray, np.ndarray]:
    """
    Split counts into (values, missing).

    A count is missing when it is None, masked (numpy masked array) or NaN.
    Missing values are replaced by 0 so downstream arithmetic stays finite;
    the returned mask is what decides whether an entry contributes.
    """
    if np.ma.isMaskedArray(counts):
        missing = np.array(np.ma.getmaskarray(counts), dtype=bool)
        raw = np.ma.getdata(counts)
    else:
        raw = np.asarray(counts, dtype=object) if not isinstance(counts, np.ndarray) else counts
        if raw.dtype == object:
            missing = np.array([c is None for c in raw.ravel()], dtype=bool).reshape(raw.shape)
        else:
            missing = np.zeros(raw.shape, dtype=bool)

    if raw.ndim != 1:
        raise ValidationError("counts must be a one-dimensional sequence", got=f"shape {raw.shape}")

    try:
        values = np.array(
            [np.nan if m else c for c, m in zip(raw.tolist(), missing.tolist())],
            dtype=np.float64,
        )
    except (TypeError, ValueError) as e:
        raise ValidationError("counts must be numeric or missing", got=str(e))

    missing = missing | np.isnan(values)
    present = values[~missing]
    if not np.all(np.isfinite(present)):
        raise ValidationError("counts must be finite", got="inf in counts")
    if np.any(present < 0):
        raise ValidationError(
            "counts must be non-negative",
            got=f"minimum count {present.min()}",
        )
    if np.any(present != np.round(present)):
        raise ValidationError(
            "counts must be integers",
            got="non-integer count values",
            hint="mark unavailable entries with None or NaN instead of a numeric code",
        )
    return np.where(missing, 0.0, values), missing


# ============================================================
# Mesh basis
# ============================================================

@dataclass(frozen=True, eq=False)
class MeshBasis:
    """
    SPDE mass/stiffness matrices M0, M1, M2 on a shared sparsity pattern.

    The union of the three nonzero patterns is computed once; each matrix is
    then stored as a coefficient vector aligned to (rows, cols). Assembling
    the precision matrix for a new log_kappa only rescales and adds these
    vectors, so the pattern (and every array shape) is the same for every
    evaluation.

    Attributes:
        n_s:   number of mesh nodes
        rows:  (nnz,) row index of each stored entry
        cols:  (nnz,) column index of each stored entry
        m0, m1, m2: (nnz,) coefficients of M0, M1, M2 on the pattern
    """
    n_s: int
    rows: np.ndarray
    cols: np.ndarray
    m0: jnp.ndarray
    m1: jnp.ndarray
    m2: jnp.ndarray

    @classmethod
    def from_matrices(cls, M0, M1, M2, symmetry_tol: float = 1e-8) -> MeshBasis:
        """
        Build a MeshBasis from three square matrices of equal shape.

        Accepts scipy.sparse matrices, dense array-likes or JAX BCOO arrays.
        Raises ValidationError on non-square or mismatched matrices; warns if
        a matrix is not symmetric within `symmetry_tol` (relative).
        """
        mats = {name: _as_csr(M, name) for name, M in (("M0", M0), ("M1", M1), ("M2", M2))}

        n_s = mats["M0"].shape[0]
        for name, M in mats.items():
            if M.shape != (n_s, n_s):
                raise ValidationError(
                    f"Mesh matrix {name} does not match M0",
                    expected=f"shape ({n_s}, {n_s})",
                    got=f"shape {M.shape}",
                )
            asym = _max_asymmetry(M)
            if asym > symmetry_tol:
                warnings.warn(
                    f"Mesh matrix {name} is not symmetric (relative asymmetry {asym:.3g}); "
                    "the assembled precision matrix will not be symmetric either.",
                    RuntimeWarning,
                    stacklevel=2,
                )

        pattern = (abs(mats["M0"]) + abs(mats["M1"]) + abs(mats["M2"])).tocoo()
        order = np.lexsort((pattern.col, pattern.row))
        rows = pattern.row[order].astype(np.int64)
        cols = pattern.col[order].astype(np.int64)

        def on_pattern(M):
            # scipy returns a sparse (1, 0) matrix for empty fancy indices
            if rows.size == 0:
                return jnp.asarray(np.zeros(0, dtype=np.float64))
            return jnp.asarray(np.asarray(M[rows, cols], dtype=np.float64).ravel())

        logger.debug("Mesh basis: n_s=%d, nnz=%d", n_s, rows.size)
        return cls(
            n_s=int(n_s),
            rows=_readonly(rows),
            cols=_readonly(cols),
            m0=on_pattern(mats["M0"]),
            m1=on_pattern(mats["M1"]),
            m2=on_pattern(mats["M2"]),
        )

    @property
    def nnz(self) -> int:
        return int(self.rows.size)

    @property
    def indices(self) -> np.ndarray:
        """(nnz, 2) index array in BCOO layout."""
        return np.stack([self.rows, self.cols], axis=1)

    def to_scipy(self) -> Tuple[sparse.csr_matrix, sparse.csr_matrix, sparse.csr_matrix]:
        """Return (M0, M1, M2) as SciPy CSR matrices."""
        shape = (self.n_s, self.n_s)
        return tuple(
            sparse.csr_matrix((np.asarray(m, dtype=np.float64), (self.rows, self.cols)), shape=shape)
            for m in (self.m0, self.m1, self.m2)
        )


# ============================================================
# Observations
# ============================================================

@dataclass(frozen=True, eq=False)
class Observations:
    """
    Binned count observations.

    counts:     (n_i,) float, missing entries stored as 0
    observed:   (n_i,) bool, False where the count is missing
    site_index: (n_i,) int, mesh node of each observation
    time_index: (n_i,) int, time step of each observation

    Use Observations.from_sequences() to build from raw user input. Direct
    construction is validated too, and the arrays are frozen as copies.
    """
    counts: np.ndarray
    observed: np.ndarray
    site_index: np.ndarray
    time_index: np.ndarray

    def __post_init__(self):
        arrays = {
            "counts": np.asarray(self.counts, dtype=np.float64),
            "observed": np.asarray(self.observed, dtype=bool),
            "site_index": np.asarray(self.site_index),
            "time_index": np.asarray(self.time_index),
        }
        for name, arr in arrays.items():
            if arr.ndim != 1:
                raise ValidationError(
                    f"{name} must be a one-dimensional sequence",
                    got=f"shape {arr.shape}",
                )
        _check_lengths({name: arr.shape[0] for name, arr in arrays.items()})

        counts, observed = arrays["counts"], arrays["observed"]
        present = counts[observed]
        if not np.all(np.isfinite(present)) or np.any(present < 0):
            raise ValidationError(
                "Observed counts must be finite and non-negative",
                hint="mark missing counts with observed=False",
            )

        object.__setattr__(self, "counts", _readonly(np.where(observed, counts, 0.0)))
        object.__setattr__(self, "observed", _readonly(observed))
        for name in ("site_index", "time_index"):
            object.__setattr__(self, name, _readonly(_as_index_array(arrays[name], name)))

    @classmethod
    def from_sequences(cls, counts, site_index, time_index) -> Observations:
        """
        Validate and freeze raw observation sequences.

        The three lengths are compared first, before anything else is parsed,
        so a length mismatch is always reported as such.
        """
        _check_lengths(
            {
                "counts": len(counts),
                "site_index": len(site_index),
                "time_index": len(time_index),
            }
        )

        values, missing = _parse_counts(counts)
        return cls(
            counts=values,
            observed=~missing,
            site_index=_as_index_array(site_index, "site_index"),
            time_index=_as_index_array(time_index, "time_index"),
        )

    def __len__(self) -> int:
        return int(self.counts.shape[0])

    @property
    def n_missing(self) -> int:
        return int(np.count_nonzero(~self.observed))

    def check_indices(self, n_s: int, n_t: int) -> None:
        """
        Raise ObservationIndexError for the first observation whose site or
        time index falls outside [0, n_s) or [0, n_t).
        """
        bad_site = np.flatnonzero((self.site_index < 0) | (self.site_index >= n_s))
        bad_time = np.flatnonzero((self.time_index < 0) | (self.time_index >= n_t))

        first_site = bad_site[0] if bad_site.size else None
        first_time = bad_time[0] if bad_time.size else None

        if first_site is not None and (first_time is None or first_site <= first_time):
            raise ObservationIndexError(first_site, "site", self.site_index[first_site], n_s)
        if first_time is not None:
            raise ObservationIndexError(first_time, "time", self.time_index[first_time], n_t)


# ============================================================
# Model definition
# ============================================================

@dataclass(frozen=True, eq=False)
class ModelData:
    """
    Immutable model definition shared by every likelihood evaluation.

    mesh:         MeshBasis (n_s nodes)
    observations: Observations, indices validated against (n_s, n_t)
    n_t:          number of time steps
    area_weights: (n_s,) per-site area. Kept as part of the input contract;
                  the likelihood does not use it.
    """
    mesh: MeshBasis
    observations: Observations
    n_t: int
    area_weights: Optional[np.ndarray] = None

    def __post_init__(self):
        if int(self.n_t) != self.n_t or self.n_t < 0:
            raise ValidationError("n_t must be a non-negative integer", got=f"n_t={self.n_t}")
        object.__setattr__(self, "n_t", int(self.n_t))

        n_s = self.mesh.n_s
        if self.area_weights is None:
            area = np.ones(n_s, dtype=np.float64)
        else:
            area = np.asarray(self.area_weights, dtype=np.float64)
            if area.shape != (n_s,):
                raise ValidationError(
                    "area_weights must have one entry per mesh node",
                    expected=f"shape ({n_s},)",
                    got=f"shape {area.shape}",
                )
        object.__setattr__(self, "area_weights", _readonly(area))

        self.observations.check_indices(n_s, self.n_t)

        logger.info(
            "Model data: n_s=%d, n_t=%d, n_i=%d (%d missing), nnz=%d",
            n_s,
            self.n_t,
            len(self.observations),
            self.observations.n_missing,
            self.mesh.nnz,
        )

    @property
    def n_s(self) -> int:
        return self.mesh.n_s

    @classmethod
    def from_arrays(
        cls,
        n_s: int,
        n_t: int,
        a_s: Optional[Sequence[float]],
        c_i: Sequence,
        s_i: Sequence[int],
        t_i: Sequence[int],
        M0,
        M1,
        M2,
    ) -> ModelData:
        """
        Build a ModelData from the flat data contract produced by the
        external mesh builder and data binner.

        Checks run in order: dimensions, observation lengths and values,
        mesh matrices, then index ranges. Nothing numerical happens before
        all of them pass.
        """
        for name, value in (("n_s", n_s), ("n_t", n_t)):
            if int(value) != value or value < 0:
                raise ValidationError(f"{name} must be a non-negative integer", got=f"{name}={value}")

        observations = Observations.from_sequences(c_i, s_i, t_i)
        mesh = MeshBasis.from_matrices(M0, M1, M2)
        if mesh.n_s != n_s:
            raise ValidationError(
                "Mesh matrices do not match n_s",
                expected=f"shape ({n_s}, {n_s})",
                got=f"shape ({mesh.n_s}, {mesh.n_s})",
            )
        return cls(mesh=mesh, observations=observations, n_t=int(n_t), area_weights=a_s)


__all__ = [
    "MeshBasis",
    "Observations",
    "ModelData",
]
