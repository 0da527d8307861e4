import sys

from . import get
from . import preprocessing as pp
from ._utilities import session_info, set_env, tqdm_joblib
from .preprocessing import (
    Identity,
    LogNormalize,
    ProjectionFit,
    QRLinearModelFit,
    compute_residual_stats,
)

sys.modules.update({f"{__name__}.{m}": globals()[m] for m in ["pp", "get"]})

__all__ = [
    "compute_residual_stats",
    "Identity",
    "LogNormalize",
    "QRLinearModelFit",
    "ProjectionFit",
    "session_info",
    "set_env",
    "tqdm_joblib",
    "pp",
    "get",
]
