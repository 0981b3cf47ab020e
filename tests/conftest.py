"""
Shared pytest fixtures for PhyloHMM tests.
"""
import itertools

import pytest
import numpy as np


@pytest.fixture
def three_site_table():
    """
    3 sites x 2 categories: category 0 favored at sites 0 and 2,
    category 1 favored at site 1.
    """
    return np.array([
        [0.0, -1.0],
        [-1.0, 0.0],
        [0.0, -1.0],
    ])


@pytest.fixture
def random_table():
    """Random 40 x 3 log-likelihood table."""
    rng = np.random.default_rng(42)
    return np.log(rng.uniform(0.01, 1.0, size=(40, 3)))


@pytest.fixture
def small_random_table():
    """Random 5 x 3 table, small enough for brute-force path enumeration."""
    rng = np.random.default_rng(7)
    return rng.normal(-2.0, 1.0, size=(5, 3))


@pytest.fixture
def blocky_table():
    """
    100 x 2 table: first half strongly favors category 0,
    second half strongly favors category 1.
    """
    table = np.full((100, 2), -5.0)
    table[:50, 0] = 0.0
    table[50:, 1] = 0.0
    return table


@pytest.fixture
def make_model():
    """Factory for a PhyloHMM with a loaded site table."""
    from phylohmm.core.hmm import PhyloHMM

    def _make(table, tran_same_cat=None):
        table = np.asarray(table, dtype=np.float64)
        model = PhyloHMM(table.shape[0], table.shape[1], tran_same_cat=tran_same_cat)
        model.set_site_like_cat(table)
        return model

    return _make


@pytest.fixture
def path_scores():
    """
    Brute-force log-likelihood of every category path, using the same
    model as PhyloHMM: transitions [source, dest], prior on the last site.
    """
    def _scores(table, transit_log, prob_log):
        nsite, ncat = table.shape
        scores = {}
        for path in itertools.product(range(ncat), repeat=nsite):
            s = table[0, path[0]]
            for i in range(1, nsite):
                s += transit_log[path[i - 1], path[i]] + table[i, path[i]]
            s += prob_log[path[-1]]
            scores[path] = s
        return scores

    return _scores
