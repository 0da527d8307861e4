"""
Per-gene mean and residual variance after a precomputed linear model fit.

Rows of the expression matrix are processed one at a time: each row is read
into a scratch buffer, transformed, averaged, projected onto the residual
space of the fit and reduced to a residual sum of squares. The scratch
buffer is reused across rows, and every parallel chunk gets its own.
"""

from typing import Optional

import numpy as np
from joblib import Parallel, delayed
from scanpy import logging as logg
from tqdm import tqdm

from .._utilities import resolve_n_jobs, tqdm_joblib
from .._validate import validate_ncells, validate_residual_df
from ._linear_model import LinearModelFit
from ._matrix import RowReader, create_row_reader
from ._transform import Identity, RowTransform


def _residual_stats_chunk(
    reader: RowReader,
    fit: LinearModelFit,
    transform: RowTransform,
    start: int,
    stop: int,
) -> tuple[np.ndarray, np.ndarray]:
    ncells = reader.ncol
    ncoefs = fit.ncoefs
    resid_df = ncells - ncoefs

    means = np.empty(stop - start, dtype=np.float64)
    variances = np.empty(stop - start, dtype=np.float64)
    buffer = np.empty(ncells, dtype=np.float64)
    rows = reader.block(start, stop)

    with np.errstate(all="ignore"):
        for k in range(stop - start):
            rows.get_row(k, buffer)
            transform.apply(buffer)
            means[k] = buffer.sum() / ncells
            fit.multiply(buffer)
            resid = buffer[ncoefs:]
            variances[k] = np.dot(resid, resid) / resid_df
    return means, variances


def _chunk_bounds(ngenes: int, chunk_size: int) -> list[tuple[int, int]]:
    return [(s, min(s + chunk_size, ngenes)) for s in range(0, ngenes, chunk_size)]


def compute_residual_stats(
    X,
    fit: LinearModelFit,
    transform: Optional[RowTransform] = None,
    transpose: bool = False,
    subset_row=None,
    n_jobs: Optional[int] = 1,
    chunk_size: int = 1000,
    progress: bool = False,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Compute the mean and residual variance of every row of ``X``.

    For each gene, the (transformed) values are averaged before the fit is
    applied, so the mean describes the values themselves and not the
    residuals. The variance is the residual sum of squares divided by the
    residual degrees of freedom ``ncells - fit.ncoefs``.

    Floating-point anomalies produced by the transform, such as the log of a
    non-positive value, are not reported. They propagate as ``nan`` or
    ``inf`` into the statistics of the affected gene.

    Args:
        X: Genes x cells matrix: dense, sparse, file-backed or a
            :class:`RowReader`. Integer and floating point values are both
            accepted and give identical results for identical values.
        fit: Precomputed fit whose ``ncells`` matches the columns of ``X``.
        transform: Transform applied to every row before fitting,
            :class:`Identity` if not provided.
        transpose: Treat the columns of ``X`` as genes.
        subset_row: Integer indices or boolean mask of the genes to process.
            The outputs follow the order of the subset.
        n_jobs: Number of threads processing chunks of rows.
            Uses ``scanpy.settings.n_jobs`` if ``None``.
        chunk_size: Number of rows per parallel task.
        progress: Show a progress bar over chunks.

    Returns:
        Two float64 arrays of length ``ngenes``, the means and the residual
        variances, in row order.
    """
    reader = create_row_reader(X, transpose=transpose, subset_row=subset_row)
    _transform = Identity() if transform is None else transform
    if not isinstance(_transform, RowTransform):
        raise TypeError(
            f"'transform' must be a RowTransform, got {type(_transform).__name__}."
        )
    if chunk_size < 1:
        raise ValueError(f"'chunk_size' must be positive: {chunk_size}")

    ngenes, ncells = reader.shape
    validate_ncells("linear model fit", fit.ncells, ncells)
    validate_residual_df(fit.ncoefs, ncells)
    _transform.check(ncells)

    _n_jobs = resolve_n_jobs(n_jobs)
    bounds = _chunk_bounds(ngenes, chunk_size)
    start = logg.info(
        f"computing residual statistics for {ngenes} genes across {ncells} cells"
    )
    logg.debug(
        f"using {reader!r}, {fit!r} and {_transform!r} "
        f"over {len(bounds)} chunks with {_n_jobs} jobs"
    )

    if ngenes == 0:
        res = []
    elif _n_jobs == 1 or len(bounds) == 1:
        res = [
            _residual_stats_chunk(reader, fit, _transform, s, e)
            for s, e in tqdm(bounds, disable=not progress, mininterval=0.5)
        ]
    else:
        with tqdm_joblib(
            tqdm(total=len(bounds), disable=not progress, mininterval=0.5, miniters=1)
        ) as _:
            res = Parallel(n_jobs=_n_jobs, prefer="threads")(
                delayed(_residual_stats_chunk)(reader, fit, _transform, s, e)
                for s, e in bounds
            )

    means = np.concatenate([m for m, _ in res]) if res else np.empty(0)
    variances = np.concatenate([v for _, v in res]) if res else np.empty(0)
    logg.info("    finished", time=start)
    return means, variances


__all__ = [
    "compute_residual_stats",
]
