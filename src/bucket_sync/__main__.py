import sys

from bucket_sync.sync.__main__ import main

if __name__ == "__main__":
    sys.exit(main())
