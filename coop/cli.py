"""
coop Command Line Interface

Usage:
    python -m coop <command> -i INPUT -o OUTPUT [options]

Commands:
    cosine      Cosine similarity between columns
    pcor        Pearson correlation between columns
    covar       Covariance between columns

Examples:
    python -m coop cosine -i data.parquet -o cosine.parquet
    python -m coop covar -i data.csv -o cov.csv --weights w.csv --method ml
    python -m coop cosine -i triplets.parquet --sparse --row-col i --col-col j --value-col x
    python -m coop pcor -i data.parquet --config coop.yaml -y

Safety checks (as in the pipeline entry points):
    1. Input files must exist
    2. Output can't overwrite an input
    3. Overwriting an existing output asks for confirmation (skip with -y)
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Set

from coop.api import compute
from coop.core.config import CoopConfig, load_config
from coop.core.types import Mode
from coop.io.reader import read_dense, read_triplets, read_weights
from coop.io.writer import write_matrix
from coop.validation.errors import CoopError

logger = logging.getLogger(__name__)

COMMANDS = {
    'cosine': Mode.COSINE,
    'pcor': Mode.CORRELATION,
    'covar': Mode.COVARIANCE,
}


def _add_common_arguments(parser: argparse.ArgumentParser, command: str) -> None:
    parser.add_argument('-i', '--input', required=True, metavar='FILE',
                        help='[INPUT] parquet/CSV matrix (or triplets with --sparse)')
    parser.add_argument('-o', '--output', default=f'{command}.parquet', metavar='FILE',
                        help=f'[OUTPUT] result path (default: {command}.parquet)')
    parser.add_argument('--columns', nargs='+', default=None,
                        help='Variables to use (dense input; default: all numeric columns)')
    parser.add_argument('--sparse', action='store_true',
                        help='Input is a long-format (row, col, value) triplet table')
    parser.add_argument('--row-col', default='row', help='Triplet row-index column (default: row)')
    parser.add_argument('--col-col', default='col', help='Triplet column-index column (default: col)')
    parser.add_argument('--value-col', default='value', help='Triplet value column (default: value)')
    parser.add_argument('--shape', nargs=2, type=int, default=None, metavar=('M', 'N'),
                        help='Logical shape of the sparse matrix (default: from max indices)')
    parser.add_argument('--index-base', type=int, choices=[0, 1], default=0,
                        help='Triplet index base (default: 0)')
    parser.add_argument('--config', default=None, metavar='FILE',
                        help='[INPUT] YAML engine configuration')
    parser.add_argument('-y', '--yes', action='store_true',
                        help='Skip confirmation prompts (for automated scripts)')
    parser.add_argument('-q', '--quiet', action='store_true', help='Suppress output')
    parser.add_argument('--debug', action='store_true', help='Debug logging')

    if command != 'cosine':
        parser.add_argument('--weights', default=None, metavar='FILE',
                            help='[INPUT] row weights (first column, or --weights-column)')
        parser.add_argument('--weights-column', default=None, help='Column holding the weights')
        parser.add_argument('--method', default='unbiased', choices=['unbiased', 'ml'],
                            help='Normalization (default: unbiased)')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='coop',
        description='Cosine / correlation / covariance matrices over dense and sparse data',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest='command', required=True)
    for command, mode in COMMANDS.items():
        sub = subparsers.add_parser(command, help=f'{mode.value} matrix between columns')
        _add_common_arguments(sub, command)
    return parser


def _input_paths(args: argparse.Namespace) -> List[str]:
    paths = [args.input]
    for name in ('config', 'weights'):
        value = getattr(args, name, None)
        if value:
            paths.append(value)
    return paths


def _check_paths(args: argparse.Namespace) -> Optional[str]:
    """Return an error message, or None if the paths are safe."""
    resolved: Set[str] = set()
    for path in _input_paths(args):
        if not Path(path).exists():
            return f"Input file not found: {path}"
        resolved.add(str(Path(path).resolve()))

    if str(Path(args.output).resolve()) in resolved:
        return (
            f"Output '{args.output}' matches an input file!\n"
            f"       This would destroy your input data.\n"
            f"       Use -o/--output to specify a different output path."
        )
    return None


def _confirm_overwrite(path: str) -> bool:
    print(f"\nWARNING: Output file '{path}' already exists.")
    try:
        response = input("   Overwrite? [y/N]: ")
    except EOFError:
        print(
            f"ERROR: Output file '{path}' exists and running non-interactively.\n"
            f"       Use -y/--yes to overwrite, or choose a different output path.",
            file=sys.stderr,
        )
        return False
    return response.lower() == 'y'


def run(args: argparse.Namespace) -> int:
    """Execute one parsed command. Returns a process exit code."""
    mode = COMMANDS[args.command]

    error = _check_paths(args)
    if error:
        print(f"\nERROR: {error}", file=sys.stderr)
        return 1

    if Path(args.output).exists() and not args.yes and not _confirm_overwrite(args.output):
        print("   Aborted.")
        return 1

    try:
        config = load_config(args.config) if args.config else CoopConfig()

        if args.sparse:
            x = read_triplets(
                args.input,
                row=args.row_col,
                col=args.col_col,
                value=args.value_col,
                shape=tuple(args.shape) if args.shape else None,
                index_base=args.index_base,
            )
            names = [f"v{j}" for j in range(x.n)]
        else:
            x, names = read_dense(args.input, columns=args.columns)

        weights = None
        if getattr(args, 'weights', None):
            weights = read_weights(args.weights, column=args.weights_column)

        result = compute(
            mode,
            x,
            weights=weights,
            method=getattr(args, 'method', 'unbiased'),
            config=config,
        )
        write_matrix(result, args.output, names=names, verbose=not args.quiet)
    except CoopError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    logger.info("%s: wrote %s", mode.value, args.output)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')

    return run(args)


if __name__ == '__main__':
    sys.exit(main())
