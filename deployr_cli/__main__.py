"""Allow ``python -m deployr_cli``."""

import sys

from deployr_cli.cli import main

sys.exit(main())
