import sys

from relaynet.cli import main

if __name__ == "__main__":
    # Quick start: python proxy.py -p 8888
    sys.exit(main())
