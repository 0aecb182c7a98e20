"""
Batch association testing of a k-mer presence matrix against a binary
phenotype, optionally adjusted for population structure with MDS covariates.

Every k-mer is fitted independently against the shared phenotype and
covariates, so fits run on a thread pool without synchronisation and each
result is returned as a value.
"""

import dataclasses
import time
from typing import Optional, Sequence

import numpy as np
from joblib import Parallel, delayed

from ..utils.data_types import KmerAssociationResults, KmerResult, as_binary_matrix
from ..utils.stats import chisq_pvalue, kmer_frequency
from .logit import (
    CONVERGENCE_LIMIT,
    MAX_NR_ITERATIONS,
    build_design_matrix,
    fit_design,
    quiet_optimizer_warnings,
    validate_response,
)

INVARIANT_COMMENT = "invariant"
CHISQ_FILTERED_COMMENT = "chisq-filtered"


def _test_kmer(y: np.ndarray,
               x: np.ndarray,
               mds: Optional[np.ndarray],
               chisq_threshold: Optional[float],
               convergence_limit: float,
               max_nr_iterations: int) -> KmerResult:
    """Pre-filter then fit a single k-mer"""
    frequency = kmer_frequency(x)
    chisq_p = chisq_pvalue(y, x)

    if frequency in (0.0, 1.0):
        return KmerResult(comments=(INVARIANT_COMMENT,), frequency=frequency,
                          chisq_pvalue=chisq_p)

    if chisq_threshold is not None and not chisq_p <= chisq_threshold:
        return KmerResult(comments=(CHISQ_FILTERED_COMMENT,), frequency=frequency,
                          chisq_pvalue=chisq_p)

    X = build_design_matrix(x, mds)
    result = fit_design(y, X, convergence_limit=convergence_limit,
                        max_nr_iterations=max_nr_iterations)
    return dataclasses.replace(result, frequency=frequency, chisq_pvalue=chisq_p)


def SEER_Assoc(y: np.ndarray,
               kmers: np.ndarray,
               mds: Optional[np.ndarray] = None,
               kmer_ids: Optional[Sequence[str]] = None,
               cpu: int = 1,
               chisq_threshold: Optional[float] = None,
               convergence_limit: float = CONVERGENCE_LIMIT,
               max_nr_iterations: int = MAX_NR_ITERATIONS,
               verbose: bool = True) -> KmerAssociationResults:
    """Logistic association test for every k-mer

    Args:
        y: Binary phenotype (n_samples,)
        kmers: k-mer presence/absence matrix (n_samples × n_kmers)
        mds: Optional MDS covariates (n_samples × n_dimensions)
        kmer_ids: Optional k-mer identifiers (n_kmers,)
        cpu: Number of worker threads
        chisq_threshold: Skip k-mers whose unadjusted chi-squared p-value
            exceeds this threshold
        convergence_limit: Convergence threshold of the fitting stages
        max_nr_iterations: Iteration cap of the Newton-Raphson stages
        verbose: Print progress information

    Returns:
        KmerAssociationResults with one entry per k-mer, in input order
    """
    y = validate_response(y)
    kmers = as_binary_matrix(kmers, name="k-mer matrix")
    n_samples, n_kmers = kmers.shape

    if n_samples != y.shape[0]:
        raise ValueError(f"k-mer matrix has {n_samples} samples, phenotype has {y.shape[0]}")

    if mds is not None:
        mds = np.asarray(mds, dtype=np.float64)
        if mds.ndim == 1:
            mds = mds[:, np.newaxis]
        if mds.shape[0] != n_samples:
            raise ValueError(f"MDS covariates have {mds.shape[0]} rows, expected {n_samples}")

    start_time = time.time()
    if verbose:
        n_cov = 0 if mds is None else mds.shape[1]
        print(f"Testing {n_kmers} k-mers in {n_samples} samples "
              f"({n_cov} MDS covariates, cpu={cpu})")

    def _tasks():
        for j in range(n_kmers):
            yield (y, np.ascontiguousarray(kmers[:, j]), mds, chisq_threshold,
                   convergence_limit, max_nr_iterations)

    with quiet_optimizer_warnings():
        if cpu > 1 and n_kmers > 1:
            results = Parallel(n_jobs=cpu, backend='threading')(
                delayed(_test_kmer)(*args) for args in _tasks()
            )
        else:
            results = [_test_kmer(*args) for args in _tasks()]

    association = KmerAssociationResults(results, kmer_ids=kmer_ids)

    if verbose:
        n_tested = sum(1 for r in results if r.converged)
        n_skipped = sum(1 for r in results
                        if r.comments and r.comments[-1] in (INVARIANT_COMMENT, CHISQ_FILTERED_COMMENT))
        n_failed = n_kmers - n_tested - n_skipped
        print(f"Association complete. {n_tested}/{n_kmers} k-mers tested, "
              f"{n_failed} failed to converge, {n_skipped} skipped")
        print(f"Processing time: {time.time() - start_time:.2f} seconds")
        if n_tested > 0:
            print(f"Minimum p-value: {np.nanmin(association.pvalues):.2e}")

    return association
