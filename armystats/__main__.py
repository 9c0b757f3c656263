import sys

from armystats.cli import main

sys.exit(main())
