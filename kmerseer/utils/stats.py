"""
Statistical utilities for k-mer association analysis
"""

import numpy as np
from scipy import stats


def normal_pvalue(statistic: float) -> float:
    """Two-sided p-value of a standard normal statistic

    Args:
        statistic: Wald (or any N(0,1)) test statistic

    Returns:
        2 * (1 - Phi(|statistic|))
    """
    if not np.isfinite(statistic):
        return np.nan
    # sf keeps precision in the far tail where 1 - cdf rounds to zero
    return float(2.0 * stats.norm.sf(abs(statistic)))


def kmer_frequency(x: np.ndarray) -> float:
    """Fraction of samples carrying the k-mer"""
    x = np.asarray(x, dtype=np.float64)
    if x.size == 0:
        return np.nan
    return float(np.mean(x))


def contingency_table(y: np.ndarray, x: np.ndarray) -> np.ndarray:
    """2x2 table of phenotype (rows) by k-mer presence (columns)"""
    y = np.asarray(y).astype(bool)
    x = np.asarray(x).astype(bool)
    return np.array([
        [np.sum(~y & ~x), np.sum(~y & x)],
        [np.sum(y & ~x), np.sum(y & x)],
    ], dtype=np.float64)


def chisq_pvalue(y: np.ndarray, x: np.ndarray) -> float:
    """Unadjusted chi-squared test of association between a binary
    phenotype and k-mer presence.

    Returns NaN when the table has an empty row or column (the test is
    undefined, e.g. a k-mer present in every sample).
    """
    table = contingency_table(y, x)
    if np.any(table.sum(axis=0) == 0) or np.any(table.sum(axis=1) == 0):
        return np.nan
    _, pvalue, _, _ = stats.chi2_contingency(table, correction=False)
    return float(pvalue)
