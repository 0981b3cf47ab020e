"""
Category transition model for PhyloHMM.

A single parameter, tran_same_cat, gives the probability of staying in the
same category between adjacent sites; the remaining mass is split evenly
among the other categories. The parameter is refit by a bounded 1-D Brent
search on the owning PhyloHMM's forward log-likelihood.
"""

import weakref
from typing import Any, Dict

import numpy as np
from scipy.optimize import minimize_scalar

INITIAL_TRAN_SAME_CAT = 0.9
MIN_TRAN_SAME_CAT = 1e-4
MAX_TRAN_SAME_CAT = 1.0 - 1e-4


class TransitionModel:
    """
    Transition matrix between categories, stored in log space and indexed
    [source, destination].

    The owning PhyloHMM is held through a weak reference; the PhyloHMM owns
    this object, not the other way round.
    """

    def __init__(self, ncat: int, tran_same_cat: float = INITIAL_TRAN_SAME_CAT):
        if ncat <= 0:
            raise ValueError(f"ncat must be positive, got {ncat}")
        self.ncat = int(ncat)
        self.tran_same_cat = INITIAL_TRAN_SAME_CAT
        self.transit_log = np.zeros((self.ncat, self.ncat))
        self._phylo_hmm = None
        self.set_tran_same_cat(tran_same_cat)

    def set_phylo_hmm(self, phylo_hmm):
        """Associate the PhyloHMM whose site likelihoods drive optimization."""
        self._phylo_hmm = weakref.ref(phylo_hmm)

    @property
    def phylo_hmm(self):
        owner = self._phylo_hmm() if self._phylo_hmm is not None else None
        if owner is None:
            raise RuntimeError("TransitionModel is not attached to a PhyloHMM")
        return owner

    def set_tran_same_cat(self, value: float):
        """Set the probability of staying in the same category."""
        value = float(value)
        if self.ncat > 1 and not (0.0 < value < 1.0):
            raise ValueError(f"tran_same_cat must be in (0, 1), got {value}")
        self.tran_same_cat = value
        self.compute_transit_log()

    def compute_transit_log(self):
        if self.ncat == 1:
            self.transit_log[0, 0] = 0.0
            return
        tran_diff_cat = (1.0 - self.tran_same_cat) / (self.ncat - 1)
        self.transit_log.fill(np.log(tran_diff_cat))
        np.fill_diagonal(self.transit_log, np.log(self.tran_same_cat))

    def get_transit_log(self) -> np.ndarray:
        """(ncat, ncat) log transition matrix, [source, destination]."""
        return self.transit_log

    def optimize_parameters(self, epsilon: float) -> float:
        """
        Refit tran_same_cat against the owner's current site likelihoods.

        Args:
            epsilon: Absolute tolerance on tran_same_cat

        Returns:
            Forward log-likelihood at the retained value
        """
        if epsilon <= 0:
            raise ValueError(f"epsilon must be positive, got {epsilon}")
        phylo_hmm = self.phylo_hmm
        start_value = self.tran_same_cat
        start_score = phylo_hmm.compute_back_like()
        if self.ncat == 1:
            return start_score

        def neg_log_like(value):
            self.set_tran_same_cat(value)
            return -phylo_hmm.compute_back_like()

        result = minimize_scalar(
            neg_log_like,
            bounds=(MIN_TRAN_SAME_CAT, MAX_TRAN_SAME_CAT),
            method='bounded',
            options={'xatol': epsilon},
        )

        self.set_tran_same_cat(result.x)
        score = phylo_hmm.compute_back_like()
        if score < start_score:
            self.set_tran_same_cat(start_value)
            score = start_score
        return score

    def to_dict(self) -> Dict[str, Any]:
        return {
            'n_cat': self.ncat,
            'tran_same_cat': self.tran_same_cat,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'TransitionModel':
        return cls(int(d['n_cat']),
                   tran_same_cat=d.get('tran_same_cat', INITIAL_TRAN_SAME_CAT))
