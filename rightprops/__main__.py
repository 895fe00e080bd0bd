import sys

from rightprops.services.cli.main import main

sys.exit(main())
