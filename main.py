"""Feed Archiver - command line entry point."""

import sys

from feed_archiver.cli import main

if __name__ == "__main__":
    sys.exit(main())
