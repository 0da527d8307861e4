"""
Residual variance of log-expression profiles with scanpy integration.

This module runs the residual statistics engine over the genes of an
``AnnData`` object, optionally log-normalizing raw counts with per-cell size
factors first, and stores per-gene means and residual variances in ``.var``.
"""

from collections.abc import Iterable
from typing import Optional, Union

import numpy as np
import pandas as pd
import scanpy as sc
from scanpy import logging as logg
from scanpy.get import _get_obs_rep

from .. import get
from .._validate import validate_adata, validate_layer_and_raw
from ._linear_model import QRLinearModelFit
from ._residual_stats import compute_residual_stats
from ._transform import Identity, LogNormalize

INFO_COLS = ["means", "variances"]


def _gene_mask(
    names: pd.Index, subset_genes: Optional[Union[Iterable[str], Iterable[bool]]]
) -> np.ndarray:
    if subset_genes is None:
        return np.ones(len(names), dtype=bool)
    _subset = np.asarray(subset_genes)
    if _subset.dtype == bool:
        if _subset.shape != (len(names),):
            raise ValueError(
                f"boolean 'subset_genes' has length {_subset.shape[0]}, "
                f"expected {len(names)}."
            )
        return _subset
    missing = ~pd.Index(_subset).isin(names)
    if missing.any():
        raise KeyError(
            f"Could not find genes {list(_subset[missing])[:5]} in .var_names."
        )
    return names.isin(_subset)


def residual_variance(
    adata: sc.AnnData,
    design: Optional[Union[str, Iterable[str], np.ndarray, pd.DataFrame]] = None,
    size_factors: Optional[Union[str, Iterable[float]]] = None,
    pseudo_count: float = 1.0,
    log_normalize: Optional[bool] = None,
    layer: Optional[str] = None,
    use_raw: Optional[bool] = None,
    subset_genes: Optional[Union[Iterable[str], Iterable[bool]]] = None,
    n_jobs: Optional[int] = None,
    chunk_size: int = 1000,
    inplace: bool = True,
) -> Optional[pd.DataFrame]:
    """
    Per-gene mean and residual variance after fitting a linear model.

    Args:
        adata: Annotated data matrix of shape ``n_obs x n_vars``.
        design: ``None`` for an intercept-only model, ``.obs`` key(s) of
            categorical covariates, or a design matrix with one row per cell.
        size_factors: ``.obs`` key or array of per-cell size factors.
        pseudo_count: Added to scaled counts before the log2 transform.
        log_normalize: Log-normalize the values before fitting. Defaults to
            ``True`` when size factors are given, in which case all-ones size
            factors are used if none are provided.
        layer: Layer to use instead of ``.X``.
        use_raw: Use ``.raw`` instead of ``.X``.
        subset_genes: Genes to process, as names or a boolean mask.
        n_jobs: Number of threads, ``scanpy.settings.n_jobs`` if ``None``.
        chunk_size: Number of genes per parallel task.
        inplace: Store the results in ``adata`` instead of returning them.

    Returns:
        A DataFrame with ``means`` and ``variances`` indexed by gene if
        ``inplace=False``. Otherwise these columns are added to ``adata.var``
        with ``nan`` for genes left out by ``subset_genes``.
    """
    validate_adata(adata, "pp.residual_variance")

    _layer, _use_raw = validate_layer_and_raw(adata, layer, use_raw)
    X = _get_obs_rep(adata, layer=_layer, use_raw=_use_raw)
    names = get.var_names(adata, use_raw=_use_raw)
    mask = _gene_mask(names, subset_genes)

    _log_normalize = size_factors is not None if log_normalize is None else log_normalize
    if _log_normalize:
        sf = (
            np.ones(adata.n_obs)
            if size_factors is None
            else get.size_factors(adata, size_factors)
        )
        transform = LogNormalize(sf, pseudo_count=pseudo_count)
    else:
        if size_factors is not None:
            logg.warning("ignoring size factors as `log_normalize=False`.")
        transform = Identity()

    _design = get.design_matrix(adata, design)
    fit = QRLinearModelFit.from_design(_design)

    start = logg.info(
        f"extracting residual variances using {_design.shape[1]} coefficients"
    )
    means, variances = compute_residual_stats(
        X,
        fit,
        transform=transform,
        transpose=True,
        subset_row=None if mask.all() else mask,
        n_jobs=n_jobs,
        chunk_size=chunk_size,
    )
    df = pd.DataFrame(
        dict(means=means, variances=variances),
        index=names[mask],
    )
    logg.info("    finished", time=start)

    if not inplace:
        return df

    if _use_raw:
        logg.warning("statistics from .raw are stored for the genes in .var only.")
    adata.uns["residual_variance"] = dict(
        design=list(_design.columns),
        log_normalize=_log_normalize,
        **transform.params(),
    )
    logg.hint(
        "added\n"
        "    'means', float vector (adata.var)\n"
        "    'variances', float vector (adata.var)"
    )
    for c in INFO_COLS:
        adata.var[c] = df[c].reindex(adata.var_names)
