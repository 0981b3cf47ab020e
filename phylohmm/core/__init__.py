"""Core HMM algorithms, transition model and model I/O."""

from phylohmm.core.hmm import PhyloHMM, NotDecodedError, log_dot_prod
from phylohmm.core.transition import TransitionModel
from phylohmm.core.model_io import (
    load_model,
    save_model,
    load_site_likelihoods,
    save_site_categories,
)
