"""Module entry point: ``python -m bootsource``."""

import sys

from bootsource import cli

if __name__ == "__main__":
    sys.exit(cli.main())
