import sys

from repman.main import main

sys.exit(main())
