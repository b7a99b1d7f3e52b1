import sys

from certificate_maker.cli import main

sys.exit(main())
