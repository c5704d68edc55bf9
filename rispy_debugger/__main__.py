import sys

from rispy_debugger.cli import main

sys.exit(main())
