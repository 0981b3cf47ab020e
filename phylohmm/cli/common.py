"""Shared argparse argument factories for PhyloHMM CLI tools.

Each function adds a group of related arguments to an ArgumentParser.
Default values can be overridden per-script where needed.
"""

import argparse

from phylohmm.core.transition import INITIAL_TRAN_SAME_CAT


def add_input_args(parser: argparse.ArgumentParser) -> None:
    """Add -i/--input argument for the site-likelihood table."""
    parser.add_argument(
        '-i', '--input', required=True,
        help="Per-site per-category log-likelihood table (.npy, .npz or text with header)"
    )


def add_optimize_args(parser: argparse.ArgumentParser,
                      epsilon: float = 1e-4,
                      max_rounds: int = 100,
                      tol: float = 1e-4) -> None:
    """Add optimization arguments (--epsilon, --max-rounds, --tol, --no-optimize)."""
    parser.add_argument(
        '--epsilon', type=float, default=epsilon,
        help=f"Tolerance of the transition parameter optimizer (default: {epsilon})"
    )
    parser.add_argument(
        '--max-rounds', type=int, default=max_rounds,
        help=f"Maximum optimization rounds (default: {max_rounds})"
    )
    parser.add_argument(
        '--tol', type=float, default=tol,
        help=f"Stop when a round improves the log-likelihood by less than this (default: {tol})"
    )
    parser.add_argument(
        '--no-optimize', action='store_true',
        help="Decode with the initial parameters, skip optimization"
    )


def add_transition_args(parser: argparse.ArgumentParser,
                        default: float = INITIAL_TRAN_SAME_CAT) -> None:
    """Add --tran-same-cat argument."""
    parser.add_argument(
        '--tran-same-cat', type=float, default=default,
        help=f"Initial probability of staying in the same category (default: {default})"
    )


def add_output_args(parser: argparse.ArgumentParser,
                    required: bool = False,
                    help_text: str = "Output file prefix") -> None:
    """Add -o/--output argument."""
    parser.add_argument(
        '-o', '--output', required=required, default=None,
        help=help_text
    )


def add_plot_args(parser: argparse.ArgumentParser) -> None:
    """Add --plot flag."""
    parser.add_argument(
        '--plot', action='store_true',
        help="Plot decoded categories along sites (requires --output)"
    )


def add_verbose_args(parser: argparse.ArgumentParser) -> None:
    """Add --verbose flag."""
    parser.add_argument(
        '-v', '--verbose', action='store_true',
        help="Verbose output"
    )


def add_version_args(parser: argparse.ArgumentParser) -> None:
    """Add --version flag."""
    from phylohmm import __version__
    parser.add_argument(
        '--version', action='version',
        version=f'%(prog)s {__version__}'
    )
