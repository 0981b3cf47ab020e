#!/usr/bin/env python3
"""
PhyloHMM decode CLI entry point.
Fits the category HMM to a per-site per-category likelihood table and
reports the most likely category of every site.
"""

import argparse
import sys

from phylohmm.core.hmm import PhyloHMM
from phylohmm.core.model_io import (
    load_site_likelihoods, save_model, save_site_categories,
)
from phylohmm.inference.stats import CategoryStats
from phylohmm.cli.common import (
    add_input_args, add_optimize_args, add_transition_args,
    add_output_args, add_plot_args, add_verbose_args, add_version_args,
)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Assign rate categories to alignment sites with an HMM',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Output:
  Category segments, per-category site counts and ratios, and the best path
  log-likelihood on stdout. With -o, also PREFIX.hmm_report.txt,
  PREFIX.site_categories.tsv and PREFIX.model.json.

Examples:
  # Fit and decode
  phylohmm-decode -i aln.sitelh_cat.tsv -o results/aln

  # Decode with fixed parameters
  phylohmm-decode -i site_like.npy --no-optimize --tran-same-cat 0.95
'''
    )

    add_version_args(parser)
    add_input_args(parser)
    add_output_args(parser)
    add_transition_args(parser)
    add_optimize_args(parser)
    add_plot_args(parser)
    add_verbose_args(parser)

    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    if args.plot and not args.output:
        print("Error: --plot requires --output", file=sys.stderr)
        return 1

    site_like_cat = load_site_likelihoods(args.input)
    nsite, ncat = site_like_cat.shape
    if args.verbose:
        print(f"Loaded {nsite:,} sites x {ncat} categories from {args.input}")

    model = PhyloHMM(nsite, ncat, tran_same_cat=args.tran_same_cat)
    model.set_site_like_cat(site_like_cat)

    if args.no_optimize:
        score = model.compute_back_like()
    else:
        model.fit(epsilon=args.epsilon, n_iter=args.max_rounds, tol=args.tol,
                  verbose=args.verbose)
        score = model.monitor_.history[-1]
    if args.verbose:
        print(f"HMM log-likelihood = {score}")

    model.compute_max_path()
    model.show_site_cat_max_like(sys.stdout)

    stats = CategoryStats.from_model(model)
    if args.verbose:
        summary = stats.get_summary()
        print(f"{summary['n_segments']:,} segments, "
              f"mean length {summary['segment_length_mean']:.1f}, "
              f"max length {summary['segment_length_max']:,}")

    if args.output:
        stats.write_summary(f"{args.output}.hmm_report.txt")
        save_site_categories(model, f"{args.output}.site_categories.tsv")
        save_model(model, f"{args.output}.model.json")
        if args.plot:
            stats.plot_categories(args.output)
        if args.verbose:
            print(f"\nReport: {args.output}.hmm_report.txt")
            print(f"Site categories: {args.output}.site_categories.tsv")
            print(f"Model: {args.output}.model.json")

    return 0


if __name__ == '__main__':
    sys.exit(main())
