"""Command line entry for the PropertyHub client."""

import sys

from cli.homepage import main


if __name__ == "__main__":
    sys.exit(main())
