"""
Core data structures for kmerseer
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd


class DissimilarityMatrix:
    """Pairwise sample dissimilarity matrix with validation and properties

    Must be square, symmetric, non-negative with a zero diagonal
    """

    def __init__(self, data: np.ndarray):
        if not isinstance(data, np.ndarray):
            raise ValueError("Data must be a numpy array")
        self._data = np.array(data, dtype=np.float64)

        # Validate properties
        if self._data.ndim != 2:
            raise ValueError("Dissimilarity matrix must be 2D")
        if self._data.shape[0] != self._data.shape[1]:
            raise ValueError("Dissimilarity matrix must be square")
        if not np.allclose(self._data, self._data.T, atol=1e-10):
            raise ValueError("Dissimilarity matrix must be symmetric")
        if np.any(np.diag(self._data) != 0):
            raise ValueError("Dissimilarity matrix must have a zero diagonal")
        if np.any(self._data < 0):
            raise ValueError("Dissimilarity matrix must be non-negative")

        self.n = self._data.shape[0]

    @property
    def shape(self) -> Tuple[int, int]:
        """Matrix shape"""
        return self._data.shape

    def __getitem__(self, key):
        """Support array indexing"""
        return self._data[key]

    def to_numpy(self) -> np.ndarray:
        """Convert to numpy array"""
        return self._data.copy()


@dataclass(frozen=True)
class KmerResult:
    """Association result for a single k-mer.

    ``beta``, ``se`` and ``pvalue`` are NaN unless a fitting stage converged.
    ``comments`` lists the diagnostic tags in the order they were raised.
    """

    beta: float = np.nan
    se: float = np.nan
    pvalue: float = np.nan
    comments: Tuple[str, ...] = ()
    stage: Optional[str] = None
    frequency: float = np.nan
    chisq_pvalue: float = np.nan

    @property
    def converged(self) -> bool:
        """Whether a (beta, se, p-value) triple is available"""
        return self.stage is not None

    @property
    def notes(self) -> str:
        """Comma separated comments, as written in result tables"""
        return ",".join(self.comments)


class KmerAssociationResults:
    """Association results for a set of k-mers

    Standard format: [Frequency, Chisq P-value, Beta, SE, P-value, Comments]
    for each k-mer
    """

    def __init__(self, results: Sequence[KmerResult],
                 kmer_ids: Optional[Sequence[str]] = None):

        if kmer_ids is not None and len(kmer_ids) != len(results):
            raise ValueError("kmer_ids must have one entry per result")

        self.beta = np.array([r.beta for r in results], dtype=np.float64)
        self.se = np.array([r.se for r in results], dtype=np.float64)
        self.pvalues = np.array([r.pvalue for r in results], dtype=np.float64)
        self.frequency = np.array([r.frequency for r in results], dtype=np.float64)
        self.chisq_pvalues = np.array([r.chisq_pvalue for r in results], dtype=np.float64)
        self.comments = [r.comments for r in results]
        self.stages = [r.stage for r in results]
        self.kmer_ids = list(kmer_ids) if kmer_ids is not None else None

    @property
    def n_kmers(self) -> int:
        """Number of k-mers"""
        return len(self.beta)

    def __len__(self) -> int:
        return self.n_kmers

    def __getitem__(self, idx: int) -> KmerResult:
        return KmerResult(
            beta=float(self.beta[idx]),
            se=float(self.se[idx]),
            pvalue=float(self.pvalues[idx]),
            comments=tuple(self.comments[idx]),
            stage=self.stages[idx],
            frequency=float(self.frequency[idx]),
            chisq_pvalue=float(self.chisq_pvalues[idx]),
        )

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to pandas DataFrame"""
        df = pd.DataFrame({
            'Frequency': self.frequency,
            'Chisq P-value': self.chisq_pvalues,
            'Beta': self.beta,
            'SE': self.se,
            'P-value': self.pvalues,
            'Comments': [",".join(c) for c in self.comments],
        })

        if self.kmer_ids is not None:
            df.insert(0, 'Kmer', self.kmer_ids)

        return df

    def to_numpy(self) -> np.ndarray:
        """Convert to numpy array [Beta, SE, P-value]"""
        return np.column_stack([self.beta, self.se, self.pvalues])


def as_binary_matrix(data: Union[np.ndarray, Sequence], name: str = "matrix") -> np.ndarray:
    """Coerce input to a 2D float64 array of 0/1 values"""
    arr = np.asarray(data, dtype=np.float64)
    if arr.ndim != 2:
        raise ValueError(f"{name} must be 2D, got {arr.ndim}D")
    if not np.all((arr == 0) | (arr == 1)):
        raise ValueError(f"{name} must contain only 0/1 values")
    return arr
