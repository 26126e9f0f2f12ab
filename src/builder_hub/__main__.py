"""Allow ``python -m builder_hub``."""

import sys

from builder_hub.cli import main


if __name__ == "__main__":
    sys.exit(main())
