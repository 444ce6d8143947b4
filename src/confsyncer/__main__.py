"""Allow ``python -m confsyncer``"""

import sys

from .cli import main

sys.exit(main())
