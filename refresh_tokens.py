#!/usr/bin/env python3
"""
Refresh cult.fit session cookies with a headless browser.

Visits the site with the current AT/ST cookies (the site rotates them on
page load) and prints the fresh values to stdout as FRESH_AT=... and
FRESH_ST=... so a CI workflow can capture them and update its secrets.
Diagnostics go to stderr. Exits non-zero on any failure.
"""

import os
import sys
import logging
import argparse

from dotenv import load_dotenv

from cultbook.models import TokenPair
from cultbook.token_refresh import (
    CredentialExtractionFailure,
    RefreshError,
    TokenRefresher,
)

logger = logging.getLogger('refresh')


def emit(fresh: TokenPair, github_output: str = None):
    """Write the machine-readable KEY=value lines."""
    lines = [f"FRESH_AT={fresh.at}", f"FRESH_ST={fresh.st}"]
    for line in lines:
        print(line)

    if github_output:
        with open(github_output, 'a') as f:
            f.write('\n'.join(lines) + '\n')


def main(argv=None, refresher: TokenRefresher = None) -> int:
    parser = argparse.ArgumentParser(description="Refresh cult.fit AT/ST session cookies")
    parser.add_argument('--headed', action='store_true', help='Show the browser window')
    parser.add_argument(
        '--github-output',
        action='store_true',
        help='Also append FRESH_AT/FRESH_ST to the file named by $GITHUB_OUTPUT'
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    args = parser.parse_args(argv)

    # Diagnostics on stderr, tokens on stdout
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(message)s',
        stream=sys.stderr
    )

    load_dotenv()
    current = TokenPair(at=os.getenv('AT', '').strip(), st=os.getenv('ST', '').strip())
    if not current.at or not current.st:
        logger.error("[refresh] Missing AT or ST env vars")
        return 1

    github_output = None
    if args.github_output:
        github_output = os.getenv('GITHUB_OUTPUT')
        if not github_output:
            logger.error("[refresh] --github-output given but $GITHUB_OUTPUT is not set")
            return 1

    refresher = refresher or TokenRefresher(headless=not args.headed)

    try:
        fresh = refresher.refresh(current)
    except CredentialExtractionFailure as e:
        logger.error(f"[refresh] {e}")
        logger.error("[refresh] You need to manually update AT and ST secrets")
        return 1
    except RefreshError as e:
        logger.error(f"[refresh] {e}")
        return 1

    emit(fresh, github_output)

    logger.info(f"[refresh] AT {'REFRESHED' if fresh.at != current.at else 'unchanged'}")
    logger.info(f"[refresh] ST {'REFRESHED' if fresh.st != current.st else 'unchanged'}")
    return 0


if __name__ == '__main__':
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n\nCancelled by user", file=sys.stderr)
        sys.exit(1)
