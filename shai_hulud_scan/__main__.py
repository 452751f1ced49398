import sys

from shai_hulud_scan.cli import main

sys.exit(main())
