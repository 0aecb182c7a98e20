import numpy as np
import pytest

from kmerseer.utils import stats as stats_utils
from kmerseer.utils.data_types import (
    DissimilarityMatrix,
    KmerAssociationResults,
    KmerResult,
    as_binary_matrix,
)


def test_dissimilarity_matrix_validation() -> None:
    with pytest.raises(ValueError):
        DissimilarityMatrix([[0, 1], [1, 0]])
    with pytest.raises(ValueError):
        DissimilarityMatrix(np.zeros(3))
    with pytest.raises(ValueError):
        DissimilarityMatrix(np.zeros((2, 3)))
    with pytest.raises(ValueError):
        DissimilarityMatrix(np.array([[0.0, 1.0], [2.0, 0.0]]))
    with pytest.raises(ValueError):
        DissimilarityMatrix(np.array([[1.0, 1.0], [1.0, 0.0]]))
    with pytest.raises(ValueError):
        DissimilarityMatrix(np.array([[0.0, -1.0], [-1.0, 0.0]]))


def test_dissimilarity_matrix_copies_data() -> None:
    data = np.array([[0.0, 3.0], [3.0, 0.0]])

    D = DissimilarityMatrix(data)
    data[0, 1] = 10.0

    assert D.n == 2
    assert D.shape == (2, 2)
    assert D[0, 1] == 3.0
    exported = D.to_numpy()
    exported[1, 0] = 7.0
    assert D[1, 0] == 3.0


def test_kmer_result_defaults_and_notes() -> None:
    failed = KmerResult(comments=("bfgs-fail", "nr-fail", "firth-fail"))
    fitted = KmerResult(beta=1.2, se=0.4, pvalue=0.003, comments=("bfgs-fail",), stage="nr")

    assert not failed.converged
    assert np.isnan(failed.beta)
    assert failed.notes == "bfgs-fail,nr-fail,firth-fail"
    assert fitted.converged
    assert fitted.notes == "bfgs-fail"


def test_kmer_association_results_columns() -> None:
    results = KmerAssociationResults(
        [
            KmerResult(beta=1.0, se=0.5, pvalue=0.04, stage="bfgs", frequency=0.3, chisq_pvalue=0.02),
            KmerResult(comments=("invariant",), frequency=1.0),
        ]
    )

    assert results.n_kmers == 2
    assert len(results) == 2
    np.testing.assert_array_equal(results.to_numpy()[0], [1.0, 0.5, 0.04])
    assert np.all(np.isnan(results.to_numpy()[1]))

    df = results.to_dataframe()
    assert "Kmer" not in df.columns
    assert list(df["Comments"]) == ["", "invariant"]

    second = results[1]
    assert second.comments == ("invariant",)
    assert second.stage is None
    assert second.frequency == 1.0


def test_as_binary_matrix() -> None:
    arr = as_binary_matrix([[0, 1], [1, 1]])
    assert arr.dtype == np.float64

    with pytest.raises(ValueError, match="2D"):
        as_binary_matrix([0, 1, 1])
    with pytest.raises(ValueError, match="0/1"):
        as_binary_matrix([[0, 2]], name="k-mer matrix")


def test_contingency_and_chisq() -> None:
    y = np.array([0, 0, 0, 1, 1, 1])
    x = np.array([0, 0, 1, 1, 1, 1])

    table = stats_utils.contingency_table(y, x)

    np.testing.assert_array_equal(table, [[2, 1], [0, 3]])
    assert 0 < stats_utils.chisq_pvalue(y, x) < 1
    assert np.isnan(stats_utils.chisq_pvalue(y, np.ones(6)))


def test_kmer_frequency() -> None:
    assert stats_utils.kmer_frequency(np.array([1, 0, 0, 1])) == pytest.approx(0.5)
    assert np.isnan(stats_utils.kmer_frequency(np.array([])))
