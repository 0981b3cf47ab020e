"""
Tests for phylohmm.inference.stats module.
"""
import io
import os

import pytest
import numpy as np

from phylohmm.core.hmm import PhyloHMM, NotDecodedError
from phylohmm.inference.stats import CategoryStats


@pytest.fixture
def stats():
    return CategoryStats(np.array([0, 0, 1, 1, 1, 0]), ncat=3, path_log_like=-1.5)


class TestSegments:
    def test_runs(self, stats):
        assert stats.segments() == [(0, 1, 0), (2, 4, 1), (5, 5, 0)]

    def test_single_run(self):
        s = CategoryStats(np.array([2, 2, 2]), ncat=3, path_log_like=0.0)
        assert s.segments() == [(0, 2, 2)]

    def test_single_site(self):
        s = CategoryStats(np.array([1]), ncat=2, path_log_like=0.0)
        assert s.segments() == [(0, 0, 1)]


class TestCounts:
    def test_counts_include_empty_categories(self, stats):
        np.testing.assert_array_equal(stats.counts(), [3, 3, 0])

    def test_ratios(self, stats):
        np.testing.assert_allclose(stats.ratios(), [0.5, 0.5, 0.0])

    def test_summary(self, stats):
        summary = stats.get_summary()
        assert summary['n_site'] == 6
        assert summary['n_segments'] == 3
        assert summary['segment_length_max'] == 3
        assert summary['sites_per_category'] == [3, 3, 0]
        assert summary['path_log_like'] == -1.5


class TestReport:
    def test_report_text(self, stats):
        out = io.StringIO()
        stats.write_report(out)
        assert out.getvalue() == (
            "The assignment of categories along sites with maximum likelihood\n"
            "Sites\tCategory\n"
            "[1,2]\t1\n"
            "[3,5]\t2\n"
            "[6,6]\t1\n"
            "Number of sites for each category: 3 3 0\n"
            "Ratio of sites for each category: 0.50000 0.50000 0.00000\n"
            "\n"
            "The path with maximum log likelihood: -1.50000\n"
        )

    def test_write_summary(self, stats, tmp_path):
        filepath = str(tmp_path / "report.txt")
        stats.write_summary(filepath)
        with open(filepath) as f:
            assert f.read().startswith("The assignment of categories")

    def test_plot_categories(self, stats, tmp_path):
        pdf_path = stats.plot_categories(str(tmp_path / "run"))
        assert pdf_path.endswith(".site_categories.pdf")
        assert os.path.getsize(pdf_path) > 0


class TestFromModel:
    def test_requires_decode(self):
        model = PhyloHMM(3, 2)
        with pytest.raises(NotDecodedError):
            CategoryStats.from_model(model)

    def test_from_decoded_model(self, make_model, three_site_table):
        model = make_model(three_site_table, tran_same_cat=0.9)
        score = model.compute_max_path()
        s = CategoryStats.from_model(model)
        assert s.segments() == [(0, 2, 0)]
        assert s.path_log_like == score
        np.testing.assert_array_equal(s.counts(), [3, 0])
