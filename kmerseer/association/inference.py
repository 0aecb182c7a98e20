"""
Wald inference for fitted logistic regression coefficients

The covariance of the coefficients is the inverse of the Fisher information
I = X'WX, W = diag(p(1 - p)), evaluated at the fitted coefficients. The
coefficient tested is always the k-mer column, index 1 of the design matrix.
"""

from dataclasses import dataclass
from typing import Optional

import numba
import numpy as np
from scipy import linalg
from scipy.special import expit

from ..utils.stats import normal_pvalue

# Index of the k-mer coefficient in the design matrix (after the intercept)
KMER_COLUMN = 1


@dataclass(frozen=True)
class WaldResult:
    """Wald test of the k-mer coefficient"""

    beta: float
    se: float
    statistic: float
    pvalue: float


def predict_logit_probs(X: np.ndarray, b: np.ndarray) -> np.ndarray:
    """p = 1 / (1 + exp(-Xb))"""
    return expit(X @ b)


@numba.njit(cache=True)
def _information_upper(X: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Accumulate X'WX over the upper triangle and mirror it"""
    n, p = X.shape
    info = np.zeros((p, p))
    for i in range(p):
        for j in range(i, p):
            s = 0.0
            for k in range(n):
                s += weights[k] * X[k, i] * X[k, j]
            info[i, j] = s
            if i != j:
                info[j, i] = s
    return info


def weighted_information(X: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """X'WX for W = diag(weights)"""
    return _information_upper(np.ascontiguousarray(X, dtype=np.float64),
                              np.ascontiguousarray(weights, dtype=np.float64))


def information_matrix(X: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Fisher information of the logistic model at coefficients b"""
    y_pred = predict_logit_probs(np.asarray(X, dtype=np.float64), np.asarray(b, dtype=np.float64))
    return weighted_information(X, y_pred * (1.0 - y_pred))


def invert_information(info: np.ndarray) -> Optional[np.ndarray]:
    """Inverse of a symmetric information matrix

    Uses a Cholesky inverse, falling back to the pseudo-inverse when the
    factorisation fails on a numerically full-rank matrix. Returns None if
    the matrix is rank deficient or no finite inverse exists.
    """
    if not np.all(np.isfinite(info)):
        return None

    p = info.shape[0]
    if np.linalg.matrix_rank(info) < p:
        return None

    try:
        factor = linalg.cho_factor(info, lower=False)
        covariance = linalg.cho_solve(factor, np.eye(p))
    except (linalg.LinAlgError, ValueError):
        covariance = np.linalg.pinv(info, hermitian=True)

    if not np.all(np.isfinite(covariance)):
        return None

    # Symmetrise away rounding from the solve
    return 0.5 * (covariance + covariance.T)


def wald_from_covariance(b: np.ndarray, covariance: np.ndarray) -> Optional[WaldResult]:
    """Wald statistic and two-sided normal p-value for the k-mer coefficient"""
    variance = covariance[KMER_COLUMN, KMER_COLUMN]
    if not np.isfinite(variance) or variance <= 0:
        return None

    beta = float(b[KMER_COLUMN])
    se = float(np.sqrt(variance))
    # null hypothesis b_1 = 0
    statistic = abs(beta) / se
    return WaldResult(beta=beta, se=se, statistic=statistic,
                      pvalue=normal_pvalue(statistic))


def wald_test(X: np.ndarray, b: np.ndarray) -> Optional[WaldResult]:
    """Wald test of the k-mer coefficient at fitted coefficients b

    Args:
        X: Design matrix (n_samples × n_params), intercept first
        b: Fitted coefficients (n_params,)

    Returns:
        WaldResult, or None when the information matrix cannot be inverted
    """
    covariance = invert_information(information_matrix(X, b))
    if covariance is None:
        return None
    return wald_from_covariance(b, covariance)
