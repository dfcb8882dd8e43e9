"""
Inter-annotator agreement over a corpus of per-annotator annotation
files.

* :py:mod:`standoff.agreement.cache`: parsing each file once
* :py:mod:`standoff.agreement.coding`: categorical agreement (pi, kappa)
* :py:mod:`standoff.agreement.unitizing`: span agreement (alpha-U)
* :py:mod:`standoff.agreement.report`: running and tabulating them
"""

# Author: Eric Kow
# License: BSD3

from .cache import ParseCache
from .coding import (CodingStudy, coding_agreement,
                     local_coding_agreement, prepare_coding_studies)
from .report import compute_agreement, format_report
from .unitizing import (UnitizingStudy, global_alpha_u, local_alpha_u,
                        prepare_unitizing_study)
