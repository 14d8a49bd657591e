import sys

from ec2_runner.cli import main

sys.exit(main())
