import sys

from divera_probe.launcher import main

sys.exit(main())
