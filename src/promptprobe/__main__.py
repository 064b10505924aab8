import sys

from promptprobe.cli import main

sys.exit(main())
