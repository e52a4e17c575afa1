import sys

from s3verify.cli import main

sys.exit(main())
