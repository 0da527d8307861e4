from collections.abc import Iterable
from typing import Optional, Union

import numpy as np
import pandas as pd
import scanpy as sc
from scanpy import logging as logg

from ._validate import (
    isiterable,
    validate_groupby,
    validate_layer_and_raw,
    validate_ncells,
    validate_size_factors,
)


def obs_categories(
    adata: sc.AnnData,
    key: str,
) -> Iterable[str]:
    return list(
        adata.obs[key].cat.categories
        if isinstance(adata.obs[key].dtype, pd.CategoricalDtype)
        else adata.obs[key].unique()
    )


def expression_matrix(
    adata: sc.AnnData,
    layer: Optional[str] = None,
    use_raw: Optional[bool] = None,
):
    """Cells x genes matrix selected by ``layer`` / ``use_raw``, without copying."""
    from scanpy.get import _get_obs_rep

    _layer, _use_raw = validate_layer_and_raw(adata, layer=layer, use_raw=use_raw)
    return _get_obs_rep(adata, layer=_layer, use_raw=_use_raw)


def var_names(
    adata: sc.AnnData,
    use_raw: bool = False,
) -> pd.Index:
    return adata.raw.var_names if use_raw else adata.var_names


def size_factors(
    adata: sc.AnnData,
    values: Union[str, Iterable[float]],
) -> np.ndarray:
    if isinstance(values, str):
        if values not in adata.obs.keys():
            raise KeyError(f"Could not find key {values} in .obs.columns.")
        sf = validate_size_factors(adata.obs[values].to_numpy())
    else:
        sf = validate_size_factors(values)
    validate_ncells("size factors", sf.shape[0], adata.n_obs)
    if np.any(sf <= 0):
        logg.warning("non-positive size factors will produce undefined log-values.")
    return sf


def design_matrix(
    adata: sc.AnnData,
    design: Optional[Union[str, Iterable[str], np.ndarray, pd.DataFrame]] = None,
) -> pd.DataFrame:
    """
    Design matrix with one row per observation.

    ``None`` gives an intercept-only design. One or more ``.obs`` keys of
    categorical covariates are treatment-coded against their first category
    and combined with an intercept. Arrays are used as given, and DataFrames
    are aligned to ``adata.obs_names`` by their index.
    """
    if design is None:
        return pd.DataFrame(
            dict(intercept=np.ones(adata.n_obs)), index=adata.obs_names
        )
    if isinstance(design, pd.DataFrame):
        validate_ncells("design", design.shape[0], adata.n_obs)
        if not design.index.equals(adata.obs_names):
            if not (
                design.index.is_unique and design.index.isin(adata.obs_names).all()
            ):
                raise ValueError(
                    "index of the design matrix does not match the observation names."
                )
            design = design.reindex(adata.obs_names)
        return design.astype(np.float64)
    if isinstance(design, str) or (
        isiterable(design)
        and not isinstance(design, np.ndarray)
        and all(isinstance(x, str) for x in design)
    ):
        keys = [design] if isinstance(design, str) else list(design)
        validate_groupby(adata, keys)
        covariates = [
            pd.get_dummies(
                pd.Categorical(
                    adata.obs[k], categories=obs_categories(adata, k)
                ),
                prefix=k,
                drop_first=True,
                dtype=np.float64,
            ).set_axis(adata.obs_names)
            for k in keys
        ]
        return pd.concat(
            [pd.DataFrame(dict(intercept=np.ones(adata.n_obs)), index=adata.obs_names)]
            + covariates,
            axis=1,
        )
    _design = np.asarray(design, dtype=np.float64)
    if _design.ndim == 1:
        _design = _design[:, None]
    validate_ncells("design", _design.shape[0], adata.n_obs)
    return pd.DataFrame(
        _design,
        index=adata.obs_names,
        columns=[f"coef{i}" for i in range(_design.shape[1])],
    )


__all__ = [
    "obs_categories",
    "expression_matrix",
    "var_names",
    "size_factors",
    "design_matrix",
]
