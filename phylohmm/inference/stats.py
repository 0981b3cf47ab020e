"""PhyloHMM category statistics and reporting."""

from typing import List, Tuple

import numpy as np

from phylohmm.core.hmm import NotDecodedError


class CategoryStats:
    """Summarizes a decoded category assignment along sites."""

    def __init__(self, site_categories: np.ndarray, ncat: int,
                 path_log_like: float):
        self.site_categories = np.asarray(site_categories)
        self.ncat = ncat
        self.path_log_like = path_log_like

    @classmethod
    def from_model(cls, model) -> 'CategoryStats':
        """Build from a PhyloHMM after compute_max_path()."""
        if not model.decoded:
            raise NotDecodedError(
                "site categories are not available; run compute_max_path() first"
            )
        return cls(model.site_categories.copy(), model.ncat, model.path_log_like)

    @property
    def nsite(self) -> int:
        return len(self.site_categories)

    def segments(self) -> List[Tuple[int, int, int]]:
        """Runs of equal category as (start, end, category), 0-indexed, inclusive."""
        cats = self.site_categories
        if len(cats) == 0:
            return []
        # Sites where the category changes from the previous site
        breaks = np.flatnonzero(cats[1:] != cats[:-1]) + 1
        starts = np.concatenate(([0], breaks))
        ends = np.concatenate((breaks - 1, [len(cats) - 1]))
        return [(int(s), int(e), int(cats[s])) for s, e in zip(starts, ends)]

    def counts(self) -> np.ndarray:
        return np.bincount(self.site_categories, minlength=self.ncat)

    def ratios(self) -> np.ndarray:
        return self.counts() / self.nsite

    def get_summary(self) -> dict:
        """Generate summary statistics."""
        segments = self.segments()
        lengths = [e - s + 1 for s, e, _ in segments]
        return {
            'n_site': self.nsite,
            'n_cat': self.ncat,
            'n_segments': len(segments),
            'segment_length_mean': float(np.mean(lengths)) if lengths else 0.0,
            'segment_length_max': int(np.max(lengths)) if lengths else 0,
            'sites_per_category': self.counts().tolist(),
            'ratio_per_category': self.ratios().tolist(),
            'path_log_like': self.path_log_like,
        }

    def write_report(self, out):
        """Write the segment table, counts, ratios and best path score."""
        out.write("The assignment of categories along sites with maximum likelihood\n")
        out.write("Sites\tCategory\n")
        for start, end, cat in self.segments():
            out.write(f"[{start + 1},{end + 1}]\t{cat + 1}\n")

        out.write("Number of sites for each category:")
        for n in self.counts():
            out.write(f" {n}")
        out.write("\n")

        out.write("Ratio of sites for each category:")
        for r in self.ratios():
            out.write(f" {r:.5f}")
        out.write("\n\n")

        out.write(f"The path with maximum log likelihood: {self.path_log_like:.5f}\n")

    def write_summary(self, filepath: str):
        """Write the report to a text file."""
        with open(filepath, 'w') as f:
            self.write_report(f)

    def plot_categories(self, output_prefix: str) -> str:
        """Plot the decoded category along sites; returns the PDF path."""
        import matplotlib
        matplotlib.use('Agg')  # Non-interactive backend
        import matplotlib.pyplot as plt

        pdf_path = f"{output_prefix}.site_categories.pdf"
        sites = np.arange(1, self.nsite + 1)

        fig, axes = plt.subplots(2, 1, figsize=(10, 6),
                                 gridspec_kw={'height_ratios': [2, 1]})
        fig.suptitle('PhyloHMM Site Categories', fontsize=14, fontweight='bold')

        ax = axes[0]
        ax.step(sites, self.site_categories + 1, where='mid', color='steelblue')
        ax.set_xlabel('Site')
        ax.set_ylabel('Category')
        ax.set_yticks(np.arange(1, self.ncat + 1))
        ax.set_title(f'Best path log-likelihood: {self.path_log_like:.5f}')

        ax = axes[1]
        ax.bar(np.arange(1, self.ncat + 1), self.ratios(), color='gray',
               edgecolor='black')
        ax.set_xlabel('Category')
        ax.set_ylabel('Ratio of sites')
        ax.set_xticks(np.arange(1, self.ncat + 1))

        fig.tight_layout()
        fig.savefig(pdf_path)
        plt.close(fig)
        return pdf_path
