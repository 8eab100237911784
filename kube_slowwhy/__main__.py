import sys

from kube_slowwhy.cli import main

if __name__ == "__main__":
    sys.exit(main())
