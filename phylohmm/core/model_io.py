"""
PhyloHMM model I/O module

Handles:
- Saving fitted parameters (category prior, transition parameter) as JSON
- Loading them back from .json or .npz
- Loading per-site per-category log-likelihood tables (.npy, .npz, text)
- Writing decoded site categories as TSV

The site-likelihood table itself is never part of a model file; it is
produced by the phylogenetic likelihood engine for each analysis.
"""

import json

import numpy as np
import pandas as pd

from phylohmm.core.hmm import PhyloHMM, NotDecodedError

MODEL_FORMAT_VERSION = '1.0'

# Columns of a site-likelihood text table that are not per-category values
NON_CATEGORY_COLUMNS = ('Site', 'LnL')


# =============================================================================
# Model files
# =============================================================================

def save_model(model: PhyloHMM, filepath: str):
    """Save fitted parameters to JSON."""
    data = model.to_dict()
    data['version'] = MODEL_FORMAT_VERSION
    with open(filepath, 'w') as f:
        json.dump(data, f, indent=2)


def load_model(filepath: str) -> PhyloHMM:
    """
    Load a model from file (format auto-detected by extension).

    - .json: written by save_model
    - .npz: arrays n_site, n_cat, prob and optionally tran_same_cat
    """
    if filepath.endswith('.npz'):
        return _load_npz(filepath)
    if filepath.endswith('.json'):
        return _load_json(filepath)
    raise ValueError(f"Unsupported model file format: {filepath}")


def _load_json(filepath: str) -> PhyloHMM:
    with open(filepath, 'r') as f:
        data = json.load(f)

    if data.get('model_type') != 'PhyloHMM':
        raise ValueError(f"{filepath} is not a PhyloHMM model file")
    return PhyloHMM.from_dict(data)


def _load_npz(filepath: str) -> PhyloHMM:
    data = np.load(filepath, allow_pickle=False)

    d = {
        'n_site': int(data['n_site']),
        'n_cat': int(data['n_cat']),
        'prob': data['prob'].tolist(),
    }
    if 'tran_same_cat' in data.files:
        d['transition'] = {'n_cat': d['n_cat'],
                           'tran_same_cat': float(data['tran_same_cat'])}
    return PhyloHMM.from_dict(d)


# =============================================================================
# Site likelihood tables and decoded categories
# =============================================================================

def load_site_likelihoods(filepath: str) -> np.ndarray:
    """
    Load an (nsite, ncat) table of per-site per-category log-likelihoods.

    Supports:
    - .npy: a 2-D array
    - .npz: key 'site_like_cat', otherwise the first array
    - anything else: whitespace-separated text with a header row; 'Site'
      and 'LnL' columns are dropped, the rest are categories in order
    """
    if filepath.endswith('.npy'):
        table = np.load(filepath, allow_pickle=False)
    elif filepath.endswith('.npz'):
        data = np.load(filepath, allow_pickle=False)
        key = 'site_like_cat' if 'site_like_cat' in data.files else data.files[0]
        table = data[key]
    else:
        df = pd.read_csv(filepath, sep=r'\s+', comment='#')
        df = df.drop(columns=[c for c in NON_CATEGORY_COLUMNS if c in df.columns])
        table = df.to_numpy(dtype=np.float64)

    table = np.asarray(table, dtype=np.float64)
    if table.ndim != 2:
        raise ValueError(f"Site likelihood table must be 2-D, got shape {table.shape}")
    if table.shape[0] == 0 or table.shape[1] == 0:
        raise ValueError(f"Site likelihood table is empty: {filepath}")
    return np.ascontiguousarray(table)


def save_site_categories(model: PhyloHMM, filepath: str):
    """Write decoded categories as TSV (Site, Category; both 1-indexed)."""
    if not model.decoded:
        raise NotDecodedError(
            "site categories are not available; run compute_max_path() first"
        )
    df = pd.DataFrame({
        'Site': np.arange(1, model.nsite + 1),
        'Category': model.site_categories + 1,
    })
    df.to_csv(filepath, sep='\t', index=False)
