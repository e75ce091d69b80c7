"""
Command-line entry point.

    python -m prmcmc --input=data.txt --output=results/run1 --nSweeps=10000 --nBurn=1000

Every option except --verbose is passed on to profile_regression().
Exits 0 on success and 1 if the run fails.
"""

import argparse
import logging
import shlex
import sys

from .mcmc.backend import profile_regression

logger = logging.getLogger('prmcmc')


def main(argv=None):
    argv = sys.argv[1:] if argv is None else list(argv)

    parser = argparse.ArgumentParser(
        prog='prmcmc',
        description='Profile regression by Dirichlet process mixture MCMC',
        add_help=False,
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    args, rest = parser.parse_known_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(message)s',
    )

    try:
        profile_regression(shlex.join(rest))
    except Exception as e:
        logger.error(f"prmcmc failed: {type(e).__name__}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
