import sys

from contest_engine.cli import main

sys.exit(main())
