"""
Pairwise sample dissimilarity for population structure

Distances are Manhattan distances between sample rows, which for 0/1
k-mer presence data is the number of k-mers differing between two samples.
"""

import time
from typing import Iterator, Tuple, Union

import numba
import numpy as np
from joblib import Parallel, delayed

from ..utils.data_types import DissimilarityMatrix


@numba.njit(cache=True, nogil=True)
def _row_distance(row_1: np.ndarray, row_2: np.ndarray) -> float:
    """Sum of absolute element-wise differences between two rows"""
    total = 0.0
    for k in range(row_1.shape[0]):
        total += abs(row_1[k] - row_2[k])
    return total


def _pair_distance(i: int, j: int,
                   row_1: np.ndarray,
                   row_2: np.ndarray) -> Tuple[int, int, float]:
    """One unit of work: distance between rows i and j"""
    return i, j, _row_distance(row_1, row_2)


def _upper_triangle_pairs(n: int) -> Iterator[Tuple[int, int]]:
    """Off-diagonal upper triangle (i < j) in row-major order"""
    for i in range(n):
        for j in range(i + 1, n):
            yield i, j


def SEER_Dissimilarity(M: Union[np.ndarray, list],
                       cpu: int = 1,
                       verbose: bool = False) -> DissimilarityMatrix:
    """Symmetric pairwise distance matrix over the rows of M

    Only the upper triangle is computed. With ``cpu > 1`` each pair is a unit
    of work on a pool of ``cpu`` threads; at most ``cpu`` dispatches are in
    flight and results are drained in submission order. Each worker returns
    ``(row, col, distance)`` and only this function writes to the output, so
    the result does not depend on the number of workers.

    Args:
        M: Sample matrix (n_samples × n_features), 0/1 entries
        cpu: Number of worker threads (<= 1 computes pairs synchronously)
        verbose: Print progress information

    Returns:
        DissimilarityMatrix (n_samples × n_samples)
    """
    matrix = np.ascontiguousarray(M, dtype=np.float64)
    if matrix.ndim != 2:
        raise ValueError(f"Sample matrix must be 2D, got {matrix.ndim}D")

    n_samples = matrix.shape[0]
    n_pairs = n_samples * (n_samples - 1) // 2
    start_time = time.time()

    if verbose:
        print(f"Computing dissimilarity matrix ({n_samples} samples, "
              f"{matrix.shape[1]} features, {n_pairs} pairs, cpu={cpu})")

    # Diagonal stays zero, no work scheduled for it
    dist = np.zeros((n_samples, n_samples), dtype=np.float64)

    if cpu > 1 and n_pairs > 0:
        parallel = Parallel(n_jobs=cpu, backend='threading',
                            pre_dispatch=cpu, batch_size=1,
                            return_as='generator')
        tasks = (
            delayed(_pair_distance)(i, j, matrix[i], matrix[j])
            for i, j in _upper_triangle_pairs(n_samples)
        )
        for row, col, value in parallel(tasks):
            dist[row, col] = value
            dist[col, row] = value
    else:
        for i, j in _upper_triangle_pairs(n_samples):
            row, col, value = _pair_distance(i, j, matrix[i], matrix[j])
            dist[row, col] = value
            dist[col, row] = value

    if verbose:
        print(f"Dissimilarity matrix complete in {time.time() - start_time:.2f} seconds")

    return DissimilarityMatrix(dist)
