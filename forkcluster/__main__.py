"""Run the forkcluster CLI: python -m forkcluster."""

import sys

from forkcluster.cli import main

if __name__ == "__main__":
    sys.exit(main())
