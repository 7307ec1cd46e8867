import sys

from framiq.cli import main

sys.exit(main())
