"""Allow ``python -m gitbug_mcp``."""

import sys

from gitbug_mcp.cli import main

sys.exit(main())
