import sys

from tvcode.cli import main

sys.exit(main())
