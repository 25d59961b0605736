import sys

from agile_planner.cli import main

sys.exit(main())
