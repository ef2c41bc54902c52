"""Allow ``python -m ip_monitor``."""

import sys

from ip_monitor.cli import main


sys.exit(main())
