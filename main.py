"""CLI entrypoint for the Halloween scare studio."""

import sys

from halloween_scare.cli import main


if __name__ == "__main__":
    sys.exit(main())
