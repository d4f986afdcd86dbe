import sys

from ormscope.cli import main

sys.exit(main())
