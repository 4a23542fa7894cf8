#!/usr/bin/env python
"""The step-by-step calculator command-line interface"""

BANNER = """
                     _                        _
                 ___| |_ ___ _ __   ___ __ _| | ___
                / __| __/ _ \\ '_ \\ / __/ _` | |/ __|
                \\__ \\ ||  __/ |_) | (_| (_| | | (__
                |___/\\__\\___| .__/ \\___\\__,_|_|\\___|
                            |_|
            Shows every step on the way to the answer.
      Operators: + - * / ^    Functions: log sin cos tan ctg sqrt
"""

import argparse
import logging
import sys

from functools import partial
stderr = partial(print, file=sys.stderr)

import stepcalclib

logger = logging.getLogger(__name__)


def show(expr):
    """Print the step trace of an expression."""
    for line in stepcalclib.trace(expr):
        print(line)


def repl(quiet=False):
    """Keep reading expressions until EOF; bad ones are reported and skipped."""
    if not quiet:
        stderr(BANNER)
    try:
        while True:
            try:
                expr = input('calc> ').strip()
                if expr:
                    show(expr)
            except stepcalclib.CalcError as ex:
                logger.debug("rejected %r: %r", expr, ex)
                stderr('error:', ex)
    except EOFError:
        stderr('\ncaught EOF')
    except KeyboardInterrupt:
        stderr('\ninterrupted')
    return 0


def build_parser():
    parser = argparse.ArgumentParser(
        prog='stepcalc',
        description="Evaluate an arithmetic expression and print every reduction step.")
    parser.add_argument(
        'expression', nargs='*',
        help="expression to evaluate; without one, read expressions from stdin")
    parser.add_argument(
        '-q', '--quiet', action='store_true',
        help="don't print the banner in interactive mode")
    parser.add_argument(
        '-v', '--verbose', action='store_true',
        help="log every stage of the evaluation")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if not args.expression:
        return repl(quiet=args.quiet)

    try:
        show(' '.join(args.expression))
    except stepcalclib.CalcError as ex:
        stderr('error:', ex)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
