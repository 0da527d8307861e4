"""
Precomputed linear model fits used to project expression rows onto residuals.

A fit exposes ``ncoefs`` and ``ncells`` along with an in-place ``multiply``.
After ``multiply(x)``, ``x[:ncoefs]`` holds the effects of the model
coefficients and ``x[ncoefs:]`` holds ``ncells - ncoefs`` residual effects
whose sum of squares is the residual sum of squares of the fit.
"""

from typing import Union

import numpy as np
import pandas as pd
from scipy import linalg
from scipy.linalg import lapack

from .._validate import validate_residual_df


class LinearModelFit:
    """Base class for precomputed linear model fits."""

    ncoefs: int
    ncells: int

    def multiply(self, x: np.ndarray) -> None:
        raise NotImplementedError("Subclasses must implement this method")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(ncells={self.ncells}, ncoefs={self.ncoefs})"


class QRLinearModelFit(LinearModelFit):
    """
    Linear model fit stored as a compact Householder QR decomposition.

    The factors are those returned by ``scipy.linalg.qr(design, mode="raw")``,
    i.e. LAPACK ``geqrf`` output: the reflectors below the diagonal of ``qr``
    and their scalar factors in ``tau``. ``multiply`` applies ``Q^T`` with
    LAPACK ``dormqr`` without ever forming ``Q``.

    Args:
        qr: ``ncells x ncoefs`` array of packed reflectors.
        tau: ``ncoefs`` reflector scales.
    """

    def __init__(self, qr: np.ndarray, tau: np.ndarray):
        _qr = np.asfortranarray(qr, dtype=np.float64)
        _tau = np.ascontiguousarray(tau, dtype=np.float64)
        if _qr.ndim != 2:
            raise ValueError(f"'qr' must be 2-dimensional: got shape {_qr.shape}.")
        if _tau.shape != (_qr.shape[1],):
            raise ValueError(
                f"'tau' has length {_tau.shape[0]} but 'qr' has {_qr.shape[1]} columns."
            )
        self.ncells, self.ncoefs = _qr.shape
        validate_residual_df(self.ncoefs, self.ncells)
        self.qr = _qr
        self.tau = _tau

        # workspace query
        _, work, info = lapack.dormqr(
            "L", "T", self.qr, self.tau, np.zeros((self.ncells, 1)), -1
        )
        self._check_info(info)
        self.lwork = max(1, int(work[0].real))

    @classmethod
    def from_design(cls, design: Union[np.ndarray, pd.DataFrame]) -> "QRLinearModelFit":
        _design = np.asarray(design, dtype=np.float64)
        if _design.ndim != 2:
            raise ValueError(
                f"'design' must be 2-dimensional: got shape {_design.shape}."
            )
        validate_residual_df(_design.shape[1], _design.shape[0])
        (qr, tau), _ = linalg.qr(_design, mode="raw")
        return cls(qr, tau)

    @staticmethod
    def _check_info(info: int) -> None:
        if info < 0:
            raise np.linalg.LinAlgError(
                f"illegal value in argument {-info} of LAPACK dormqr."
            )

    def multiply(self, x: np.ndarray) -> None:
        cq, _, info = lapack.dormqr(
            "L", "T", self.qr, self.tau, x.reshape(-1, 1), self.lwork, overwrite_c=1
        )
        self._check_info(info)
        x[:] = cq[:, 0]


class ProjectionFit(LinearModelFit):
    """
    Linear model fit stored as a full orthonormal basis.

    The first ``ncoefs`` columns of ``basis`` span the column space of the
    design, the remaining columns span its orthogonal complement.
    ``multiply`` overwrites ``x`` with ``basis.T @ x``.

    Args:
        basis: ``ncells x ncells`` orthonormal matrix.
        ncoefs: Number of columns spanning the design.
    """

    def __init__(self, basis: np.ndarray, ncoefs: int):
        _basis = np.asarray(basis, dtype=np.float64)
        if _basis.ndim != 2 or _basis.shape[0] != _basis.shape[1]:
            raise ValueError(f"'basis' must be a square matrix: got shape {_basis.shape}.")
        self.ncells = _basis.shape[0]
        self.ncoefs = int(ncoefs)
        validate_residual_df(self.ncoefs, self.ncells)
        self._basis_t = np.ascontiguousarray(_basis.T)
        self._basis_t.setflags(write=False)

    @classmethod
    def from_design(cls, design: Union[np.ndarray, pd.DataFrame]) -> "ProjectionFit":
        _design = np.asarray(design, dtype=np.float64)
        if _design.ndim != 2:
            raise ValueError(
                f"'design' must be 2-dimensional: got shape {_design.shape}."
            )
        validate_residual_df(_design.shape[1], _design.shape[0])
        q, _ = linalg.qr(_design, mode="full")
        return cls(q, _design.shape[1])

    def multiply(self, x: np.ndarray) -> None:
        x[:] = self._basis_t @ x


__all__ = [
    "LinearModelFit",
    "QRLinearModelFit",
    "ProjectionFit",
]
