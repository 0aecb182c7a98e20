import warnings

import numpy as np
import pandas as pd
import pytest

from kmerseer import SEER_Assoc, SEER_Logit, SEER_MDS
from kmerseer.association.assoc import CHISQ_FILTERED_COMMENT, INVARIANT_COMMENT
from kmerseer.utils.data_types import KmerAssociationResults


def _structured_population(seed: int = 1):
    """Two sub-populations with different case rates and background k-mers"""
    rng = np.random.default_rng(seed)
    n_per_pop = 30
    pop = np.repeat([0, 1], n_per_pop)
    background = np.where(
        pop[:, np.newaxis] == 0,
        rng.random((2 * n_per_pop, 40)) < 0.2,
        rng.random((2 * n_per_pop, 40)) < 0.8,
    ).astype(float)

    causal = rng.integers(0, 2, size=2 * n_per_pop).astype(float)
    eta = -1.5 + 3.5 * causal + 1.0 * pop
    y = (rng.random(2 * n_per_pop) < 1.0 / (1.0 + np.exp(-eta))).astype(float)
    return y, causal, background


def test_assoc_returns_results_in_input_order() -> None:
    y, causal, background = _structured_population()
    kmers = np.column_stack([causal, background[:, :5]])

    results = SEER_Assoc(y, kmers, verbose=False)

    assert isinstance(results, KmerAssociationResults)
    assert results.n_kmers == 6
    for j in range(6):
        single = SEER_Logit(y, kmers[:, j])
        assert results[j].beta == single.beta
        assert results[j].pvalue == single.pvalue
    assert results.pvalues[0] < 0.05


def test_assoc_records_frequency_and_chisq() -> None:
    y = np.array([0, 0, 0, 0, 1, 1, 1, 1], dtype=float)
    kmers = np.array([[1, 0, 1, 0, 1, 0, 1, 0]], dtype=float).T

    results = SEER_Assoc(y, kmers, verbose=False)

    assert results.frequency[0] == pytest.approx(0.5)
    assert results.chisq_pvalues[0] == pytest.approx(1.0)


def test_assoc_marks_invariant_kmers() -> None:
    y = np.array([0, 0, 1, 1], dtype=float)
    kmers = np.array(
        [
            [1, 0, 1],
            [1, 0, 0],
            [1, 0, 1],
            [1, 0, 0],
        ],
        dtype=float,
    )

    results = SEER_Assoc(y, kmers, verbose=False)

    assert results[0].comments == (INVARIANT_COMMENT,)
    assert results[1].comments == (INVARIANT_COMMENT,)
    assert not results[0].converged
    assert np.isnan(results.pvalues[0])
    assert results[2].converged


def test_assoc_chisq_filter_skips_weak_kmers() -> None:
    y, causal, background = _structured_population(seed=4)
    null_kmer = np.array([1, 0] * 30, dtype=float)
    kmers = np.column_stack([causal, null_kmer])

    results = SEER_Assoc(y, kmers, chisq_threshold=1e-3, verbose=False)

    assert np.isnan(results[1].beta)
    assert results[1].chisq_pvalue > 1e-3
    assert results[1].comments == (CHISQ_FILTERED_COMMENT,)


def test_assoc_parallel_matches_sequential() -> None:
    y, causal, background = _structured_population(seed=2)
    kmers = np.column_stack([causal, background[:, :8]])
    mds = SEER_MDS(M=background, dimensions=2, verbose=False)

    sequential = SEER_Assoc(y, kmers, mds=mds, cpu=1, verbose=False)
    threaded = SEER_Assoc(y, kmers, mds=mds, cpu=3, verbose=False)

    np.testing.assert_array_equal(sequential.beta, threaded.beta)
    np.testing.assert_array_equal(sequential.se, threaded.se)
    np.testing.assert_array_equal(sequential.pvalues, threaded.pvalues)
    assert sequential.comments == threaded.comments


def test_assoc_with_mds_covariates_matches_single_fit() -> None:
    y, causal, background = _structured_population(seed=3)
    mds = SEER_MDS(M=background, dimensions=3, verbose=False)

    results = SEER_Assoc(y, causal[:, np.newaxis], mds=mds, verbose=False)
    single = SEER_Logit(y, causal, covariates=mds)

    assert results[0].beta == single.beta
    assert results[0].se == single.se


def test_assoc_to_dataframe_with_ids() -> None:
    y, causal, background = _structured_population()
    kmers = np.column_stack([causal, background[:, 0]])

    df = SEER_Assoc(y, kmers, kmer_ids=["ACGT", "TTGA"], verbose=False).to_dataframe()

    assert isinstance(df, pd.DataFrame)
    assert list(df.columns) == ["Kmer", "Frequency", "Chisq P-value", "Beta", "SE", "P-value", "Comments"]
    assert list(df["Kmer"]) == ["ACGT", "TTGA"]


def test_assoc_verbose_summary(capsys) -> None:
    y, causal, background = _structured_population()

    SEER_Assoc(y, np.column_stack([causal, np.ones_like(causal)]), verbose=True)

    captured = capsys.readouterr()
    assert "Testing 2 k-mers in 60 samples" in captured.out
    assert "1/2 k-mers tested" in captured.out
    assert "1 skipped" in captured.out
    assert "Minimum p-value" in captured.out


def test_assoc_input_validation() -> None:
    y = np.array([0, 1, 0, 1], dtype=float)

    with pytest.raises(ValueError):
        SEER_Assoc(y, np.ones((3, 2)), verbose=False)
    with pytest.raises(ValueError):
        SEER_Assoc(y, np.full((4, 2), 2.0), verbose=False)
    with pytest.raises(ValueError):
        SEER_Assoc(y, np.ones((4, 2)), mds=np.zeros((3, 1)), verbose=False)
    with pytest.raises(ValueError):
        SEER_Assoc(y, np.ones((4, 2)), kmer_ids=["a"], verbose=False)


def test_assoc_threaded_leaves_warning_filters_unchanged() -> None:
    y, causal, background = _structured_population(seed=4)
    kmers = np.column_stack([causal, background])
    before = list(warnings.filters)

    SEER_Assoc(y, kmers, cpu=8, verbose=False)

    assert warnings.filters == before


def test_mds_warnings_still_raised_after_threaded_assoc() -> None:
    y, causal, background = _structured_population(seed=5)
    SEER_Assoc(y, np.column_stack([causal, background]), cpu=8, verbose=False)

    # Path metric of a star, non-Euclidean
    D = np.array(
        [
            [0.0, 1.0, 1.0, 1.0],
            [1.0, 0.0, 2.0, 2.0],
            [1.0, 2.0, 0.0, 2.0],
            [1.0, 2.0, 2.0, 0.0],
        ]
    )
    with warnings.catch_warnings(record=True) as caught:
        SEER_MDS(D=D, dimensions=4, verbose=False)

    assert any("negative eigenvalues" in str(w.message) for w in caught)
