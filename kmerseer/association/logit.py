"""
Logistic regression of a binary phenotype on k-mer presence.

Each k-mer is fitted with a cascade of stages, each tried only if the
previous one failed:

1. ``bfgs``  - quasi-Newton maximisation of the log-likelihood with the
   analytic score (statsmodels ``Logit``, L-BFGS), stopping when the
   objective improvement falls below the convergence limit.
2. ``nr``    - Newton-Raphson (iteratively reweighted least squares).
3. ``firth`` - Newton-Raphson with Firth's bias-reducing penalty, which
   stays finite under (quasi-)separation.

Stages return a ``Converged`` or ``Failed`` outcome; the driver records a
``<stage>-fail`` comment for every failed stage and stops at the first
convergence. The coefficient of interest is always design column 1.
"""

import warnings
from contextlib import contextmanager
from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, Optional, Tuple, Union

import numpy as np
import statsmodels.api as sm
from statsmodels.tools.sm_exceptions import ModelWarning, PerfectSeparationError

from ..utils.data_types import KmerResult
from .inference import (
    KMER_COLUMN,
    WaldResult,
    information_matrix,
    invert_information,
    predict_logit_probs,
    wald_from_covariance,
    wald_test,
    weighted_information,
)

CONVERGENCE_LIMIT = 1e-7
MAX_NR_ITERATIONS = 1000
BFGS_MAX_ITERATIONS = 1000

BFGS_STAGE = "bfgs"
NR_STAGE = "nr"
FIRTH_STAGE = "firth"

FIT_CASCADE: Tuple[str, ...] = (BFGS_STAGE, NR_STAGE, FIRTH_STAGE)


@dataclass(frozen=True)
class Converged:
    """A stage reached a usable estimate"""

    stage: str
    coefficients: np.ndarray
    wald: WaldResult
    iterations: int


@dataclass(frozen=True)
class Failed:
    """A stage gave up; ``reason`` says why"""

    stage: str
    reason: str

    @property
    def comment(self) -> str:
        return f"{self.stage}-fail"


StageOutcome = Union[Converged, Failed]


def validate_response(y: np.ndarray) -> np.ndarray:
    """Check the phenotype is a 1D 0/1 vector containing both classes"""
    y = np.asarray(y, dtype=np.float64)
    if y.ndim != 1:
        raise ValueError(f"Phenotype must be 1D, got {y.ndim}D")
    if not np.all((y == 0) | (y == 1)):
        raise ValueError("Phenotype must be binary (0/1)")
    if y.min() == y.max():
        raise ValueError("Phenotype must contain both cases and controls")
    return y


def build_design_matrix(x: np.ndarray,
                        covariates: Optional[np.ndarray] = None) -> np.ndarray:
    """Intercept, k-mer column, then covariate columns"""
    x = np.asarray(x, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError(f"k-mer vector must be 1D, got {x.ndim}D")
    columns = [np.ones(x.shape[0]), x]

    if covariates is not None:
        covariates = np.asarray(covariates, dtype=np.float64)
        if covariates.ndim == 1:
            covariates = covariates[:, np.newaxis]
        if covariates.shape[0] != x.shape[0]:
            raise ValueError(f"Covariates have {covariates.shape[0]} rows, "
                             f"expected {x.shape[0]}")
        columns.append(covariates)

    return np.ascontiguousarray(np.column_stack(columns))


def initial_coefficients(y: np.ndarray, n_params: int, fill: float) -> np.ndarray:
    """Starting point: intercept ln(m / (1 - m)), everything else ``fill``"""
    m = np.mean(y)
    start = np.full(n_params, fill, dtype=np.float64)
    start[0] = np.log(m / (1.0 - m))
    return start


def bfgs_stage(y: np.ndarray, X: np.ndarray,
               convergence_limit: float = CONVERGENCE_LIMIT,
               max_nr_iterations: int = MAX_NR_ITERATIONS) -> StageOutcome:
    """Quasi-Newton maximum likelihood fit"""
    # Slopes start at 1 here, at 0 in the Newton-Raphson stages
    start = initial_coefficients(y, X.shape[1], fill=1.0)

    try:
        with np.errstate(all="ignore"):
            fit = sm.Logit(y, X).fit(
                start_params=start,
                method="lbfgs",
                maxiter=BFGS_MAX_ITERATIONS,
                disp=0,
                # L-BFGS stops once the relative objective change is
                # below factr * eps
                factr=convergence_limit / np.finfo(float).eps,
                pgtol=1e-10,
                # Covariance comes from the Wald step, not statsmodels
                skip_hessian=True,
            )
    except (PerfectSeparationError, np.linalg.LinAlgError, ValueError) as e:
        return Failed(BFGS_STAGE, f"optimizer error: {e}")

    if not fit.mle_retvals.get("converged", False):
        return Failed(BFGS_STAGE, "did not converge")

    coefficients = np.asarray(fit.params, dtype=np.float64)
    if not np.all(np.isfinite(coefficients)):
        return Failed(BFGS_STAGE, "non-finite coefficients")

    wald = wald_test(X, coefficients)
    if wald is None:
        return Failed(BFGS_STAGE, "singular information matrix")

    return Converged(BFGS_STAGE, coefficients, wald,
                     int(fit.mle_retvals.get("iterations", 0)))


def hat_diagonal(X: np.ndarray, covariance: np.ndarray,
                 weights: np.ndarray) -> np.ndarray:
    """Diagonal of H = W^1/2 X (X'WX)^-1 X' W^1/2"""
    return weights * np.einsum("ij,jk,ik->i", X, covariance, X)


def newton_raphson_stage(y: np.ndarray, X: np.ndarray,
                         convergence_limit: float = CONVERGENCE_LIMIT,
                         max_nr_iterations: int = MAX_NR_ITERATIONS,
                         firth: bool = False) -> StageOutcome:
    """Newton-Raphson fit, optionally with Firth's penalty

    Converges when the k-mer coefficient changes by less than
    ``convergence_limit`` between iterations.
    """
    stage = FIRTH_STAGE if firth else NR_STAGE

    # b = 0 with a non-zero intercept, see doi:10.1016/S0169-2607(02)00088-3
    parameter_iterations = [initial_coefficients(y, X.shape[1], fill=0.0)]
    converged = False

    with np.errstate(all="ignore"):
        for _ in range(max_nr_iterations):
            b0 = parameter_iterations[-1]
            y_pred = predict_logit_probs(X, b0)
            weights = y_pred * (1.0 - y_pred)

            covariance = invert_information(weighted_information(X, weights))
            if covariance is None:
                return Failed(stage, "singular information matrix")

            residual = y - y_pred
            if firth:
                # DOI: 10.1002/sim.1047
                residual = residual + hat_diagonal(X, covariance, weights) * (0.5 - y_pred)

            b1 = b0 + covariance @ (X.T @ residual)
            if not np.all(np.isfinite(b1)):
                return Failed(stage, "non-finite coefficients")
            parameter_iterations.append(b1)

            if abs(b1[KMER_COLUMN] - b0[KMER_COLUMN]) < convergence_limit:
                converged = True
                break

    if not converged:
        return Failed(stage, f"no convergence after {max_nr_iterations} iterations")

    coefficients = parameter_iterations[-1]
    covariance = invert_information(information_matrix(X, coefficients))
    wald = None if covariance is None else wald_from_covariance(coefficients, covariance)
    if wald is None:
        return Failed(stage, "singular information matrix")

    return Converged(stage, coefficients, wald, len(parameter_iterations) - 1)


@contextmanager
def quiet_optimizer_warnings():
    """Silence optimizer warnings while a batch of fits runs

    The warning filter list is process-global, so this is entered once by the
    thread that starts the fits and never by the stages themselves.
    """
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ModelWarning)
        warnings.simplefilter("ignore", RuntimeWarning)
        yield


STAGES: Dict[str, Callable[..., StageOutcome]] = {
    BFGS_STAGE: bfgs_stage,
    NR_STAGE: newton_raphson_stage,
    FIRTH_STAGE: partial(newton_raphson_stage, firth=True),
}


def fit_design(y: np.ndarray, X: np.ndarray,
               convergence_limit: float = CONVERGENCE_LIMIT,
               max_nr_iterations: int = MAX_NR_ITERATIONS,
               cascade: Tuple[str, ...] = FIT_CASCADE) -> KmerResult:
    """Run the fitting cascade on a prepared design matrix

    Args:
        y: Binary phenotype (n_samples,)
        X: Design matrix (n_samples × n_params), intercept then k-mer column
        convergence_limit: Convergence threshold shared by all stages
        max_nr_iterations: Iteration cap of the Newton-Raphson stages
        cascade: Stage names to try, in order

    Returns:
        KmerResult with the estimate of the first converged stage and a
        comment for each stage that failed before it
    """
    comments = []
    for stage in cascade:
        outcome = STAGES[stage](y, X,
                                convergence_limit=convergence_limit,
                                max_nr_iterations=max_nr_iterations)
        if isinstance(outcome, Converged):
            return KmerResult(
                beta=outcome.wald.beta,
                se=outcome.wald.se,
                pvalue=outcome.wald.pvalue,
                comments=tuple(comments),
                stage=outcome.stage,
            )
        comments.append(outcome.comment)

    return KmerResult(comments=tuple(comments))


def SEER_Logit(y: np.ndarray,
               x: np.ndarray,
               covariates: Optional[np.ndarray] = None,
               convergence_limit: float = CONVERGENCE_LIMIT,
               max_nr_iterations: int = MAX_NR_ITERATIONS) -> KmerResult:
    """Logistic association test of one k-mer

    Args:
        y: Binary phenotype (n_samples,)
        x: k-mer presence/absence (n_samples,)
        covariates: Optional covariates, e.g. MDS components
            (n_samples × n_covariates)
        convergence_limit: Convergence threshold
        max_nr_iterations: Iteration cap of the Newton-Raphson stages

    Returns:
        KmerResult (beta, standard error, Wald p-value and comments)
    """
    y = validate_response(y)
    X = build_design_matrix(x, covariates)
    if X.shape[0] != y.shape[0]:
        raise ValueError(f"k-mer vector has {X.shape[0]} samples, phenotype has {y.shape[0]}")

    with quiet_optimizer_warnings():
        return fit_design(y, X, convergence_limit=convergence_limit,
                          max_nr_iterations=max_nr_iterations)
