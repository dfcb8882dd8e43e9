"""
standoff-util subcommands
"""

# Author: Eric Kow
# License: BSD3

from . import (check,
               iaa)

# at the time of this writing argparse doesn't support a way to group
# subcommands into sections, so we just list them in order
SUBCOMMANDS = [
    check,
    iaa,
]
