"""Allow ``python -m coop``."""

import sys

from coop.cli import main

sys.exit(main())
