"""Allow ``python -m taskpulse``."""

import sys

from taskpulse.interfaces.cli import main

if __name__ == "__main__":
    sys.exit(main())
