"""Allow running the package with python -m gwtopo (same as the gwtopo console script)."""
import sys

from gwtopo.main import main

sys.exit(main())
