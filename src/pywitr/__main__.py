"""Allow `python -m pywitr`."""

import sys

from pywitr.cli import main

if __name__ == "__main__":
    sys.exit(main())
