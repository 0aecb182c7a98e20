"""
Metric multidimensional scaling (MDS) for population structure correction
"""

import warnings
from typing import Optional, Tuple, Union

import numpy as np

from ..utils.data_types import DissimilarityMatrix
from .distance import SEER_Dissimilarity

# Negative eigenvalues smaller than this fraction of the largest one are
# rounding noise and are clamped without a warning
NEGATIVE_EIGENVALUE_TOLERANCE = 1e-10


def _as_dissimilarity_array(D: Union[DissimilarityMatrix, np.ndarray]) -> np.ndarray:
    if isinstance(D, DissimilarityMatrix):
        return D.to_numpy()
    return DissimilarityMatrix(np.asarray(D, dtype=np.float64)).to_numpy()


def _double_centre(distances: np.ndarray) -> np.ndarray:
    """B = -0.5 * J P^2 J with J = I - (1/n) 11'"""
    n = distances.shape[0]
    P2 = np.square(distances)
    J = np.eye(n) - np.ones((n, n)) / float(n)
    return -0.5 * J @ P2 @ J


def mds_eigenvalues(D: Union[DissimilarityMatrix, np.ndarray]) -> np.ndarray:
    """Eigenvalues of the double-centred matrix, largest first

    Args:
        D: Dissimilarity matrix (n_samples × n_samples)

    Returns:
        Eigenvalue spectrum in descending order (may contain negatives for
        non-Euclidean dissimilarities)
    """
    B = _double_centre(_as_dissimilarity_array(D))
    return np.linalg.eigvalsh(B)[::-1]


def SEER_MDS(D: Optional[Union[DissimilarityMatrix, np.ndarray]] = None,
             M: Optional[np.ndarray] = None,
             dimensions: int = 3,
             cpu: int = 1,
             verbose: bool = True) -> np.ndarray:
    """Metric MDS embedding of samples

    Either a dissimilarity matrix D or a sample matrix M (from which D is
    computed with ``cpu`` workers) must be given.

    Negative eigenvalues of the double-centred matrix are clamped to zero
    rather than producing NaN, with a warning. Dimensions whose eigenvalue
    is zero after clamping (up to rounding) carry no structure and would
    make the per-k-mer fits singular, so they are dropped with a warning and
    fewer than ``dimensions`` columns are returned.

    Args:
        D: Dissimilarity matrix (n_samples × n_samples), optional
        M: Sample matrix (n_samples × n_features), 0/1 entries, optional
        dimensions: Number of MDS components to return
        cpu: Worker threads for the distance calculation (if using M)
        verbose: Print progress information

    Returns:
        MDS covariates (n_samples × at most dimensions), columns ordered by
        descending eigenvalue
    """

    if D is None and M is None:
        raise ValueError("Either dissimilarity matrix D or sample matrix M must be provided")

    if D is not None and M is not None:
        warnings.warn("Both D and M provided, using dissimilarity matrix D")

    if dimensions < 1:
        raise ValueError(f"dimensions must be at least 1, got {dimensions}")

    if D is None:
        D = SEER_Dissimilarity(M, cpu=cpu, verbose=verbose)

    distances = _as_dissimilarity_array(D)
    n = distances.shape[0]

    if dimensions > n:
        warnings.warn(f"Requested {dimensions} MDS dimensions but only {n} samples; "
                      f"keeping {n}")
        dimensions = n

    if verbose:
        print(f"Performing metric MDS on dissimilarity matrix ({n}×{n})")

    B = _double_centre(distances)

    try:
        eigenvals, eigenvecs = np.linalg.eigh(B)
    except np.linalg.LinAlgError as e:
        raise ValueError(f"Failed to compute eigendecomposition: {e}")

    # eigh returns ascending order
    eigenvals = eigenvals[::-1]
    eigenvecs = eigenvecs[:, ::-1]

    requested = dimensions
    kept = eigenvals[:dimensions]
    threshold = NEGATIVE_EIGENVALUE_TOLERANCE * max(float(np.max(np.abs(eigenvals))), 1.0)
    n_negative = int(np.sum(kept < -threshold))
    if n_negative > 0:
        warnings.warn(f"{n_negative} of {requested} MDS dimensions have negative "
                      f"eigenvalues; clamping them to zero")
    kept = np.clip(kept, 0.0, None)

    # Zero columns would make every downstream design matrix rank deficient
    n_degenerate = int(np.sum(kept <= threshold))
    if n_degenerate > 0:
        warnings.warn(f"Dropping {n_degenerate} of {requested} MDS dimensions with "
                      f"zero or clamped eigenvalues")
        dimensions = requested - n_degenerate
        kept = kept[:dimensions]

    mds = eigenvecs[:, :dimensions] * np.sqrt(kept)[np.newaxis, :]

    if verbose:
        positive_total = np.sum(eigenvals[eigenvals > 0])
        print(f"Keeping top {dimensions} MDS dimensions")
        print(f"Eigenvalues: {eigenvals[:dimensions]}")
        if positive_total > 0:
            print(f"Proportion of positive spectrum: {np.sum(kept) / positive_total:.4f}")

    return np.ascontiguousarray(mds)


def validate_mds_results(mds: np.ndarray,
                         dimensions: Optional[int] = None) -> Tuple[bool, list]:
    """Validate an MDS embedding

    Args:
        mds: MDS covariates (n_samples × n_dimensions)
        dimensions: Requested number of dimensions, if known

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    if mds.ndim != 2:
        errors.append("MDS results must be a 2D matrix")
        return False, errors

    n_samples, n_dims = mds.shape

    if n_dims > n_samples:
        errors.append("MDS results have more dimensions than samples")
    if dimensions is not None and n_dims > dimensions:
        errors.append("MDS results have more dimensions than requested")

    if np.any(np.isnan(mds)) or np.any(np.isinf(mds)):
        errors.append("MDS results contain NaN or infinite values")

    return len(errors) == 0, errors
