import sys

from opskills.cli.main import main

sys.exit(main())
