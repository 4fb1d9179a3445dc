import sys

from combo_export.cli import main

sys.exit(main())
