# main.py

import sys

from wotstats.cli import main

if __name__ == "__main__":
    sys.exit(main())
