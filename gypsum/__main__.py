# SPDX-License-Identifier: MIT
"""Allow running gypsum as `python -m gypsum`."""

import sys

from gypsum.cli import main

sys.exit(main())
