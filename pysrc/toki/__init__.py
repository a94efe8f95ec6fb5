from __future__ import annotations

import logging as _logging

from ._pytoki import *
from ._pytoki import (  # for the docs
    __all__,
    __version__,
    _LayoutedBase,
    _PinnedLayout,
    _unpkl_dt,
)

# Applications decide whether and where log records go
_logging.getLogger(__name__).addHandler(_logging.NullHandler())
