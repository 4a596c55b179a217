"""Allow ``python -m nexus_fleet``."""

import sys

from nexus_fleet.cli import main

sys.exit(main())
