from collections.abc import Iterable
from typing import Optional, Union

import numpy as np
import scanpy as sc
from pandas.api.types import is_numeric_dtype
from scanpy import logging as logg


def isiterable(x) -> bool:
    return not isinstance(x, str) and isinstance(x, Iterable)


def validate_adata(adata, func_name: str) -> None:
    if not isinstance(adata, sc.AnnData):
        msg = (
            f"`{func_name}` expects an `AnnData` argument, "
            f"got {type(adata).__name__}."
        )
        raise TypeError(msg)
    return


def validate_groupby(adata: sc.AnnData, groupby: Union[str, Iterable[str]]) -> None:
    _groupby = groupby if isiterable(groupby) else [groupby]
    for g in _groupby:
        if g not in adata.obs.keys():
            raise KeyError(f"Could not find key {g} in .obs.columns.")
        elif is_numeric_dtype(adata.obs[g]):
            raise TypeError(f"Key {g} in .obs.columns is numeric dtype.")
        elif str(adata.obs[g].dtype) != "category":
            logg.warning(f"Key {g} in .obs.columns is not 'category' dtype.")
    return


def validate_layer_and_raw(
    adata: sc.AnnData,
    layer: Optional[str] = None,
    use_raw: Optional[bool] = None,
) -> tuple[Optional[str], bool]:
    _use_raw = (
        use_raw
        if isinstance(use_raw, bool)
        else (True if (layer is None and adata.raw is not None) else False)
    )
    if _use_raw and layer is not None:
        raise ValueError("Cannot specify use_raw=True and a layer at the same time.")
    if _use_raw and adata.raw is None:
        raise ValueError("use_raw=True but .raw attribute is not present.")
    if layer is not None and layer not in adata.layers.keys():
        raise KeyError(f"Could not find layer {layer} in .layers.")
    if _use_raw:
        logg.info("Using .raw.")
    return layer, _use_raw


def validate_ncells(name: str, n: int, ncells: int) -> None:
    if n != ncells:
        raise ValueError(
            f"length of {name} ({n}) does not match the number of cells ({ncells})."
        )
    return


def validate_residual_df(ncoefs: int, ncells: int) -> None:
    if ncoefs >= ncells:
        raise ValueError(
            f"no residual d.f. for variance estimation: {ncoefs} coefficients "
            f"for {ncells} cells."
        )
    return


def validate_size_factors(size_factors) -> np.ndarray:
    sf = np.asarray(size_factors, dtype=np.float64)
    if sf.ndim != 1:
        raise ValueError(f"size factors must be 1-dimensional: got shape {sf.shape}.")
    return sf
