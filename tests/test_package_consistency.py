"""
Package consistency tests.

Verify that the public symbols are importable from the package and its
subpackages and refer to the same objects.
"""
import os

import phylohmm
from phylohmm.core.hmm import PhyloHMM, NotDecodedError
from phylohmm.core.transition import TransitionModel
from phylohmm.core.model_io import load_model, save_model, load_site_likelihoods


class TestPackageImports:
    """Verify all expected symbols are importable from package."""

    def test_top_level_exports(self):
        assert phylohmm.PhyloHMM is PhyloHMM
        assert phylohmm.NotDecodedError is NotDecodedError
        assert phylohmm.TransitionModel is TransitionModel
        assert phylohmm.load_model is load_model
        assert phylohmm.save_model is save_model
        assert phylohmm.load_site_likelihoods is load_site_likelihoods

    def test_core_imports(self):
        from phylohmm.core import (
            PhyloHMM as CorePhyloHMM,
            log_dot_prod,
            save_site_categories,
        )
        assert CorePhyloHMM is PhyloHMM
        assert callable(log_dot_prod)
        assert callable(save_site_categories)

    def test_inference_imports(self):
        from phylohmm.inference import CategoryStats
        from phylohmm.inference.stats import CategoryStats as StatsCategoryStats
        assert CategoryStats is StatsCategoryStats

    def test_cli_imports(self):
        from phylohmm.cli.decode import main, parse_args
        assert callable(main)
        assert callable(parse_args)

    def test_not_decoded_is_runtime_error(self):
        assert issubclass(NotDecodedError, RuntimeError)

    def test_version(self):
        assert isinstance(phylohmm.__version__, str)


class TestPackaging:
    def test_cli_included_as_namespace_package(self):
        pyproject = os.path.join(os.path.dirname(__file__), '..', 'pyproject.toml')
        with open(pyproject) as f:
            text = f.read()
        assert 'namespaces = true' in text
        assert 'phylohmm.cli.decode:main' in text
