from ._linear_model import LinearModelFit, ProjectionFit, QRLinearModelFit
from ._matrix import create_row_reader, matrix_type
from ._residual_stats import compute_residual_stats
from ._residual_variance import residual_variance
from ._transform import Identity, LogNormalize, RowTransform

__all__ = [
    "residual_variance",
    "compute_residual_stats",
    "create_row_reader",
    "matrix_type",
    "LinearModelFit",
    "QRLinearModelFit",
    "ProjectionFit",
    "RowTransform",
    "Identity",
    "LogNormalize",
]
