"""
PhyloHMM - Hidden Markov Model over rate categories along the sites of a
sequence alignment, driven by per-site per-category likelihoods.
"""

__version__ = "1.0.0"

from phylohmm.core.hmm import PhyloHMM, NotDecodedError
from phylohmm.core.transition import TransitionModel
from phylohmm.core.model_io import load_model, save_model, load_site_likelihoods
