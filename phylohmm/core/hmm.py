"""
PhyloHMM HMM module

Provides:
1. PhyloHMM, an HMM assigning a rate category to every alignment site from
   per-site per-category log-likelihoods computed by a phylogenetic engine
2. Forward log-likelihood, Viterbi decoding and an EM step on the
   category prior
3. Numba JIT-compiled recursions over preallocated arrays

All likelihoods are carried in natural-log form. The forward and Viterbi
recursions keep only two accumulator rows (double buffer selected by
site parity) since the category process is first-order Markov.
"""

import sys
import warnings
from typing import Optional

import numpy as np
from numba import jit
from tqdm import tqdm

from phylohmm.core.transition import TransitionModel


class NotDecodedError(RuntimeError):
    """Raised when site categories are requested before a Viterbi decode."""


# =============================================================================
# Numba JIT-compiled kernels
# =============================================================================

@jit(nopython=True, cache=False)
def log_dot_prod(a, b):
    """
    log(sum_k exp(a[k] + b[k])), computed with max subtraction.

    Both vectors hold log-space values, so this is the log of the dot
    product of the corresponding probability vectors.
    Returns -inf when every term is -inf.
    """
    n = a.shape[0]
    max_v = a[0] + b[0]
    for k in range(1, n):
        v = a[k] + b[k]
        if v > max_v:
            max_v = v
    if max_v == -np.inf:
        return -np.inf
    s = 0.0
    for k in range(n):
        s += np.exp(a[k] + b[k] - max_v)
    return max_v + np.log(s)


@jit(nopython=True, cache=False)
def _forward_numba(site_like_cat, transit_log_t, work_arr):
    """
    Numba-compiled forward accumulation.

    Args:
        site_like_cat: (nsite, ncat) per-site per-category log-likelihoods
        transit_log_t: (ncat, ncat) transposed log transition matrix,
            row j holds the log-probabilities of moving into category j
        work_arr: (2, ncat) double buffer, overwritten

    Returns:
        Row index of work_arr holding the accumulator of the last site
    """
    nsite = site_like_cat.shape[0]
    ncat = site_like_cat.shape[1]

    for j in range(ncat):
        work_arr[0, j] = site_like_cat[0, j]
    pre_k = 0

    for i in range(1, nsite):
        k = pre_k ^ 1
        for j in range(ncat):
            work_arr[k, j] = (log_dot_prod(transit_log_t[j], work_arr[pre_k])
                              + site_like_cat[i, j])
        pre_k = k

    return pre_k


@jit(nopython=True, cache=False)
def _max_path_numba(site_like_cat, transit_log_t, prob_log, work_arr,
                    next_cat, site_categories):
    """
    Numba-compiled Viterbi over categories.

    Ties go to the lowest category index, both in the recursion and when
    picking the terminal category.

    Returns:
        Log-likelihood of the best path (prior included)
    """
    nsite = site_like_cat.shape[0]
    ncat = site_like_cat.shape[1]

    for j in range(ncat):
        work_arr[0, j] = site_like_cat[0, j]
        next_cat[0, j] = 0
    pre_k = 0

    for i in range(1, nsite):
        k = pre_k ^ 1
        for j in range(ncat):
            best = transit_log_t[j, 0] + work_arr[pre_k, 0]
            best_l = 0
            for l in range(1, ncat):
                v = transit_log_t[j, l] + work_arr[pre_k, l]
                if best < v:
                    best = v
                    best_l = l
            work_arr[k, j] = best + site_like_cat[i, j]
            next_cat[i, j] = best_l
        pre_k = k

    # Terminal category combined with the prior
    max_log_like = prob_log[0] + work_arr[pre_k, 0]
    max_cat = 0
    for j in range(1, ncat):
        v = prob_log[j] + work_arr[pre_k, j]
        if max_log_like < v:
            max_log_like = v
            max_cat = j

    # Traceback
    site_categories[nsite - 1] = max_cat
    for i in range(nsite - 1, 0, -1):
        max_cat = next_cat[i, max_cat]
        site_categories[i - 1] = max_cat

    return max_log_like


class PhyloHMM:
    """
    HMM over rate categories along the sites of an alignment.

    The caller fills ``site_like_cat`` (nsite x ncat, natural-log
    likelihoods) before any recursion. The category prior ``prob`` starts
    uniform and is only changed by the EM step.

    An instance is not reentrant: the double buffer and traceback table
    are shared by every operation.

    set_site_like_cat() marks a previous decode as stale. Writing into
    ``site_like_cat`` in place does not; call compute_max_path() again
    before reporting.
    """

    def __init__(self, nsite: int, ncat: int,
                 tran_same_cat: Optional[float] = None):
        if (isinstance(nsite, (bool, np.bool_))
                or not isinstance(nsite, (int, np.integer)) or nsite <= 0):
            raise ValueError(f"nsite must be a positive integer, got {nsite!r}")
        if (isinstance(ncat, (bool, np.bool_))
                or not isinstance(ncat, (int, np.integer)) or ncat <= 0):
            raise ValueError(f"ncat must be a positive integer, got {ncat!r}")

        self.nsite = int(nsite)
        self.ncat = int(ncat)

        self.prob = np.full(self.ncat, 1.0 / self.ncat)
        self.prob_log = np.empty(self.ncat)
        self.site_like_cat = np.zeros((self.nsite, self.ncat))
        self.site_categories = np.zeros(self.nsite, dtype=np.int32)
        self.next_cat = np.zeros((self.nsite, self.ncat), dtype=np.int32)
        self.work_arr = np.empty((2, self.ncat))

        self.path_log_like: float = float('nan')
        self.decoded: bool = False
        self.last_em_log_like: float = float('nan')

        self.n_iter: int = 100
        self.tol: float = 1e-4
        self.monitor_: Optional[TrainingMonitor] = None

        self.compute_log_prob()

        self.model_hmm: Optional[TransitionModel] = None
        self.initialize_transit_model(tran_same_cat)

    def initialize_transit_model(self, tran_same_cat: Optional[float] = None):
        """Attach the transition model (override for a different one)."""
        if tran_same_cat is None:
            self.model_hmm = TransitionModel(self.ncat)
        else:
            self.model_hmm = TransitionModel(self.ncat, tran_same_cat=tran_same_cat)
        self.model_hmm.set_phylo_hmm(self)

    def compute_log_prob(self):
        """Recompute prob_log from prob; log(0) gives -inf."""
        with np.errstate(divide='ignore'):
            np.log(self.prob, out=self.prob_log)

    def set_site_like_cat(self, site_like_cat: np.ndarray):
        """Copy a (nsite, ncat) log-likelihood table into the model."""
        table = np.asarray(site_like_cat, dtype=np.float64)
        if table.shape != (self.nsite, self.ncat):
            raise ValueError(
                f"site_like_cat must have shape ({self.nsite}, {self.ncat}), "
                f"got {table.shape}"
            )
        np.copyto(self.site_like_cat, table)
        self.decoded = False

    def _transit_log_t(self) -> np.ndarray:
        return np.ascontiguousarray(self.model_hmm.get_transit_log().T)

    def compute_back_like(self) -> float:
        """
        Forward log-likelihood of site_like_cat, marginalized over all
        category paths.

        Prerequisite: site_like_cat has been filled.
        """
        pre_k = _forward_numba(self.site_like_cat, self._transit_log_t(),
                               self.work_arr)
        return float(log_dot_prod(self.prob_log, self.work_arr[pre_k]))

    def compute_max_path(self) -> float:
        """
        Viterbi decoding of the categories along sites.

        Fills site_categories and path_log_like.

        Returns:
            Log-likelihood of the best path
        """
        self.path_log_like = float(_max_path_numba(
            self.site_like_cat, self._transit_log_t(), self.prob_log,
            self.work_arr, self.next_cat, self.site_categories,
        ))
        self.decoded = True
        return self.path_log_like

    def optimize_prob_em(self) -> float:
        """
        One EM step on the category prior.

        The new prior is the softmax of prob_log + the last-site forward
        accumulator. The log-likelihood under the new prior is kept in
        last_em_log_like.

        If every category has zero joint likelihood the prior is left
        unchanged.

        Returns:
            Forward log-likelihood under the prior before the update
        """
        pre_k = _forward_numba(self.site_like_cat, self._transit_log_t(),
                               self.work_arr)
        pre_work = self.work_arr[pre_k]
        work = self.work_arr[pre_k ^ 1]

        prev_log_like = float(log_dot_prod(self.prob_log, pre_work))

        np.add(self.prob_log, pre_work, out=work)
        max_j = int(np.argmax(work))
        max_v = work[max_j]
        if max_v == -np.inf:
            self.last_em_log_like = prev_log_like
            return prev_log_like
        work -= max_v
        np.exp(work, out=work)
        work[max_j] = 1.0
        self.prob[:] = work / work.sum()
        self.compute_log_prob()

        self.last_em_log_like = float(log_dot_prod(self.prob_log, pre_work))
        return prev_log_like

    def optimize_parameters(self, epsilon: float, verbose: bool = False) -> float:
        """
        Refit the transition model, then run one EM step on the prior.

        Args:
            epsilon: Tolerance for the transition model optimizer
            verbose: Print intermediate scores

        Returns:
            Forward log-likelihood after the prior update
        """
        score = self.model_hmm.optimize_parameters(epsilon)
        if verbose:
            print(f"after optimizing the transition matrix, HMM likelihood = {score}")
            print(f"tran_same_cat : {self.model_hmm.tran_same_cat}")

        self.optimize_prob_em()
        score = self.last_em_log_like
        if verbose:
            print(f"after optimizing the probability array, HMM likelihood = {score}")
            print("probability array : " + " ".join(str(p) for p in self.prob))
        return score

    def fit(self, site_like_cat: Optional[np.ndarray] = None,
            epsilon: float = 1e-4, n_iter: Optional[int] = None,
            tol: Optional[float] = None, optimize_transit: bool = True,
            verbose: bool = False, desc: str = "HMM") -> 'PhyloHMM':
        """
        Alternate transition refits and EM steps until the score stalls.

        Args:
            site_like_cat: Optional table to load first
            epsilon: Tolerance passed to the transition optimizer
            n_iter: Max rounds (default self.n_iter)
            tol: Stop when a round improves the score by less than this
            optimize_transit: If False, only the prior is updated
            verbose: Show a progress bar
            desc: Description for the progress bar

        Returns:
            self
        """
        if site_like_cat is not None:
            self.set_site_like_cat(site_like_cat)
        n_iter = self.n_iter if n_iter is None else n_iter
        tol = self.tol if tol is None else tol

        self.monitor_ = TrainingMonitor()
        prev_score = self.compute_back_like()
        self.monitor_.history.append(prev_score)

        iterator = range(n_iter)
        if verbose:
            iterator = tqdm(iterator, desc=desc, leave=False)

        for _ in iterator:
            if optimize_transit:
                score = self.optimize_parameters(epsilon)
            else:
                self.optimize_prob_em()
                score = self.last_em_log_like
            self.monitor_.history.append(score)

            improvement = score - prev_score
            if verbose:
                iterator.set_postfix({'logprob': f'{score:.4f}',
                                      'delta': f'{improvement:.2e}'})
            prev_score = score

            if improvement < tol:
                self.monitor_.converged = True
                break
        else:
            if n_iter > 0:
                warnings.warn(f"HMM optimization did not converge after {n_iter} rounds")

        return self

    def show_site_cat_max_like(self, out=None):
        """
        Write the decoded category segments, per-category site counts and
        ratios, and the best path log-likelihood to ``out`` (default stdout).
        """
        from phylohmm.inference.stats import CategoryStats

        stats = CategoryStats.from_model(self)
        stats.write_report(sys.stdout if out is None else out)

    def to_dict(self) -> dict:
        """Serialize fitted parameters (not the site table) to a dictionary."""
        d = {
            'n_site': self.nsite,
            'n_cat': self.ncat,
            'prob': self.prob.tolist(),
            'transition': self.model_hmm.to_dict(),
            'model_type': 'PhyloHMM',
        }
        if self.decoded:
            d['path_log_like'] = self.path_log_like
        return d

    @classmethod
    def from_dict(cls, d: dict) -> 'PhyloHMM':
        """Rebuild a model from to_dict() output."""
        model = cls(int(d['n_site']), int(d['n_cat']))
        if d.get('transition'):
            model_hmm = TransitionModel.from_dict(d['transition'])
            if model_hmm.ncat != model.ncat:
                raise ValueError(
                    f"transition model has {model_hmm.ncat} categories, "
                    f"expected {model.ncat}"
                )
            model.model_hmm = model_hmm
            model.model_hmm.set_phylo_hmm(model)
        if d.get('prob') is not None:
            prob = np.asarray(d['prob'], dtype=np.float64)
            if prob.shape != (model.ncat,):
                raise ValueError(f"prob must have {model.ncat} entries, got {prob.shape}")
            if not np.all(np.isfinite(prob)) or np.any(prob < 0):
                raise ValueError(f"prob must be finite and non-negative, got {prob}")
            if abs(prob.sum() - 1.0) > 1e-9:
                raise ValueError(f"prob must sum to 1, got {prob.sum()}")
            model.prob[:] = prob
            model.compute_log_prob()
        return model


class TrainingMonitor:
    """Tracks optimization progress."""
    def __init__(self):
        self.history = []
        self.converged = False
