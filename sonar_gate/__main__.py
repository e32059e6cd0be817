import sys

from sonar_gate.cli import main

sys.exit(main())
