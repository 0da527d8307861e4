"""
Row access to expression matrices regardless of how they are stored.

Rows are genes and columns are cells. A reader copies one row at a time into
a caller-owned float64 buffer, so dense, sparse and file-backed matrices are
never densified as a whole. File-backed matrices are read one block of rows
at a time through :meth:`RowReader.block`.
"""

from typing import Literal

import numpy as np
import pandas as pd
from scanpy import logging as logg
from scipy import sparse

MatrixType = Literal["integer", "numeric"]

# casting rule used when copying native values into the float64 buffer
_ROW_CASTING: dict[str, str] = dict(integer="safe", numeric="same_kind")


def matrix_type(X) -> MatrixType:
    """Element type category of ``X``: ``"integer"`` or ``"numeric"``."""
    dtype = getattr(X, "dtype", None)
    if dtype is None:
        raise ValueError(f"cannot determine element type of {type(X).__name__}.")
    kind = np.dtype(dtype).kind
    if kind in "iu":
        return "integer"
    elif kind == "f":
        return "numeric"
    raise ValueError(
        f"unsupported matrix element type {np.dtype(dtype)}: "
        "expected integer or floating point values."
    )


class RowReader:
    """
    Reads single rows of a matrix into a dense float64 buffer.

    Args:
        X: The matrix to read from, borrowed for the lifetime of the reader.
        mtype: Element type category of ``X``.
        transpose: Read columns of ``X`` as rows.
    """

    def __init__(self, X, mtype: MatrixType, transpose: bool = False):
        self.X = X
        self.mtype = mtype
        self.transpose = transpose
        nrow, ncol = X.shape
        self.shape = (ncol, nrow) if transpose else (nrow, ncol)
        self.casting = _ROW_CASTING[mtype]
        if not np.can_cast(X.dtype, np.float64, casting=self.casting):
            raise ValueError(f"cannot convert {np.dtype(X.dtype)} values to float64.")

    @property
    def nrow(self) -> int:
        return self.shape[0]

    @property
    def ncol(self) -> int:
        return self.shape[1]

    def get_row(self, i: int, out: np.ndarray) -> None:
        raise NotImplementedError("Subclasses must implement this method")

    def block(self, start: int, stop: int) -> "RowReader":
        """Reader over rows ``start:stop``, numbered from zero."""
        return SubsetRowReader(self, np.arange(start, stop))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(shape={self.shape}, type={self.mtype!r})"


class DenseRowReader(RowReader):
    def __init__(self, X, mtype: MatrixType, transpose: bool = False):
        super().__init__(X, mtype, transpose=transpose)
        self._rows = X.T if transpose else X

    def get_row(self, i: int, out: np.ndarray) -> None:
        np.copyto(out, self._rows[i], casting=self.casting)


class SparseRowReader(RowReader):
    def __init__(self, X, mtype: MatrixType, transpose: bool = False):
        super().__init__(X, mtype, transpose=transpose)
        _X = X.T if transpose else X
        if _X.format != "csr":
            logg.debug(f"converting {_X.format} matrix to csr for row access")
            _X = _X.tocsr()
        elif not _X.has_canonical_format:
            _X = _X.copy()
            _X.sum_duplicates()
        self._indptr = _X.indptr
        self._indices = _X.indices
        self._data = _X.data

    def get_row(self, i: int, out: np.ndarray) -> None:
        start, end = self._indptr[i], self._indptr[i + 1]
        out.fill(0.0)
        out[self._indices[start:end]] = self._data[start:end]


class BackedRowReader(RowReader):
    """
    Reads rows from an on-disk store such as ``h5py.Dataset`` or a backed sparse dataset.

    Single rows are sliced from the store directly. :meth:`block` loads a
    contiguous range of rows with one read and serves them from memory.
    """

    def get_row(self, i: int, out: np.ndarray) -> None:
        row = self.X[:, i] if self.transpose else self.X[i]
        if sparse.issparse(row):
            row = row.toarray()
        np.copyto(out, np.ravel(row), casting=self.casting)

    def block(self, start: int, stop: int) -> RowReader:
        values = self.X[:, start:stop] if self.transpose else self.X[start:stop]
        if sparse.issparse(values):
            return SparseRowReader(values, self.mtype, transpose=self.transpose)
        return DenseRowReader(np.asarray(values), self.mtype, transpose=self.transpose)


class SubsetRowReader(RowReader):
    """Restricts another reader to a subset of its rows, in the given order."""

    def __init__(self, reader: RowReader, rows):
        _rows = np.asarray(rows)
        if _rows.dtype == bool:
            if _rows.shape != (reader.nrow,):
                raise ValueError(
                    f"boolean row subset has length {_rows.shape[0]}, "
                    f"expected {reader.nrow}."
                )
            _rows = np.flatnonzero(_rows)
        elif _rows.size == 0:
            _rows = _rows.astype(np.intp)
        elif _rows.dtype.kind not in "iu":
            raise TypeError(f"row subset must be integer or boolean, got {_rows.dtype}.")
        if _rows.ndim != 1:
            raise ValueError(f"row subset must be 1-dimensional: got shape {_rows.shape}.")
        if _rows.size and (_rows.min() < -reader.nrow or _rows.max() >= reader.nrow):
            raise IndexError(f"row subset out of bounds for {reader.nrow} rows.")
        self.reader = reader
        self.rows = np.where(_rows < 0, _rows + reader.nrow, _rows)
        self.X = reader.X
        self.mtype = reader.mtype
        self.transpose = reader.transpose
        self.casting = reader.casting
        self.shape = (self.rows.shape[0], reader.ncol)

    def get_row(self, i: int, out: np.ndarray) -> None:
        self.reader.get_row(self.rows[i], out)

    def block(self, start: int, stop: int) -> RowReader:
        rows = self.rows[start:stop]
        if rows.size == 0:
            return SubsetRowReader(self.reader, rows)
        lo, hi = int(rows.min()), int(rows.max()) + 1
        return SubsetRowReader(self.reader.block(lo, hi), rows - lo)


def create_row_reader(X, transpose: bool = False, subset_row=None) -> RowReader:
    """
    Wrap ``X`` in a reader suited to its storage and element type.

    Args:
        X: A numpy array, pandas DataFrame, scipy sparse matrix or array, or
            a file-backed 2-D dataset supporting single-row slicing.
        transpose: Treat the columns of ``X`` as rows, e.g. to read genes from
            a cells x genes ``AnnData.X``.
        subset_row: Integer indices or boolean mask of the rows to keep.

    Returns:
        A :class:`RowReader` whose rows are the requested axis of ``X``.
    """
    if subset_row is not None:
        return SubsetRowReader(create_row_reader(X, transpose=transpose), subset_row)
    if isinstance(X, RowReader):
        if transpose:
            raise ValueError("cannot transpose an existing row reader.")
        return X
    if isinstance(X, pd.DataFrame):
        X = X.to_numpy()
    if isinstance(X, np.matrix):
        X = np.asarray(X)

    if getattr(X, "ndim", len(getattr(X, "shape", ()))) != 2:
        raise ValueError(
            f"expected a 2-dimensional matrix: got shape {getattr(X, 'shape', None)}."
        )
    mtype = matrix_type(X)

    if isinstance(X, np.ndarray):
        return DenseRowReader(X, mtype, transpose=transpose)
    elif sparse.issparse(X):
        return SparseRowReader(X, mtype, transpose=transpose)
    elif hasattr(X, "__getitem__"):
        return BackedRowReader(X, mtype, transpose=transpose)
    raise TypeError(f"cannot read rows from object of type {type(X).__name__}.")


__all__ = [
    "MatrixType",
    "matrix_type",
    "RowReader",
    "DenseRowReader",
    "SparseRowReader",
    "BackedRowReader",
    "SubsetRowReader",
    "create_row_reader",
]
