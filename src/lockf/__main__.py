"""Allow ``python -m lockf``."""

import sys

from lockf.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
