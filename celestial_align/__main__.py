"""Allow ``python -m celestial_align``."""

import sys

from celestial_align.cli import main

sys.exit(main())
