import numpy as np
import pandas as pd
import pytest
import scipy.sparse as sp

from scanpy_residuals.preprocessing import create_row_reader, matrix_type


def _rows(reader):
    out = np.empty((reader.nrow, reader.ncol))
    for i in range(reader.nrow):
        reader.get_row(i, out[i])
    return out


def test_matrix_type():
    assert matrix_type(np.zeros((2, 2), dtype=np.int32)) == "integer"
    assert matrix_type(np.zeros((2, 2), dtype=np.uint16)) == "integer"
    assert matrix_type(np.zeros((2, 2), dtype=np.float32)) == "numeric"
    assert matrix_type(sp.csr_matrix(np.eye(2))) == "numeric"


@pytest.mark.parametrize(
    "dtype", [np.complex128, np.bool_, object, "U3"], ids=["complex", "bool", "obj", "str"]
)
def test_unsupported_element_type(dtype):
    with pytest.raises(ValueError, match="element type"):
        create_row_reader(np.zeros((2, 2), dtype=dtype))


def test_dense_rows(counts):
    np.testing.assert_array_equal(_rows(create_row_reader(counts)), counts)


def test_dataframe_rows(counts):
    df = pd.DataFrame(counts)
    np.testing.assert_array_equal(_rows(create_row_reader(df)), counts)


@pytest.mark.parametrize("fmt", ["csr", "csc", "coo"])
def test_sparse_rows(counts, fmt):
    X = sp.csr_matrix(counts).asformat(fmt)
    reader = create_row_reader(X)
    assert reader.shape == counts.shape
    np.testing.assert_array_equal(_rows(reader), counts)


def test_sparse_array_rows(counts):
    np.testing.assert_array_equal(_rows(create_row_reader(sp.csr_array(counts))), counts)


def test_sparse_duplicates_are_summed():
    X = sp.csr_matrix(
        (np.array([1.0, 2.0, 3.0]), np.array([0, 0, 1]), np.array([0, 3])),
        shape=(1, 2),
    )
    out = np.empty(2)
    create_row_reader(X).get_row(0, out)
    np.testing.assert_array_equal(out, [3.0, 3.0])


def test_sparse_row_buffer_is_cleared(counts):
    reader = create_row_reader(sp.csr_matrix(counts))
    out = np.full(counts.shape[1], 99.0)
    reader.get_row(0, out)
    np.testing.assert_array_equal(out, counts[0])


def test_transposed_rows(counts):
    np.testing.assert_array_equal(
        _rows(create_row_reader(counts.T, transpose=True)), counts
    )
    np.testing.assert_array_equal(
        _rows(create_row_reader(sp.csr_matrix(counts.T), transpose=True)), counts
    )


def test_backed_rows(counts, tmp_path):
    h5py = pytest.importorskip("h5py")
    with h5py.File(tmp_path / "counts.h5", "w") as f:
        f.create_dataset("X", data=counts)
    with h5py.File(tmp_path / "counts.h5", "r") as f:
        np.testing.assert_array_equal(_rows(create_row_reader(f["X"])), counts)
        np.testing.assert_array_equal(
            _rows(create_row_reader(f["X"], transpose=True)), counts.T
        )


def test_backed_block_rows(counts, tmp_path):
    h5py = pytest.importorskip("h5py")
    with h5py.File(tmp_path / "counts.h5", "w") as f:
        f.create_dataset("X", data=counts.T)
    with h5py.File(tmp_path / "counts.h5", "r") as f:
        reader = create_row_reader(f["X"], transpose=True)
        block = reader.block(4, 11)
        assert block.shape == (7, counts.shape[1])
        np.testing.assert_array_equal(_rows(block), counts[4:11])

        subset = create_row_reader(f["X"], transpose=True, subset_row=[9, 3, 12])
        np.testing.assert_array_equal(_rows(subset.block(1, 3)), counts[[3, 12]])


def test_block_rows_in_memory(counts):
    for X in [counts, sp.csr_matrix(counts)]:
        np.testing.assert_array_equal(
            _rows(create_row_reader(X).block(10, 13)), counts[10:13]
        )


def test_existing_reader_is_reused(counts):
    reader = create_row_reader(counts)
    assert create_row_reader(reader) is reader
    with pytest.raises(ValueError, match="transpose"):
        create_row_reader(reader, transpose=True)
    with pytest.raises(ValueError, match="transpose"):
        create_row_reader(reader, transpose=True, subset_row=[0])


def test_subset_rows(counts):
    reader = create_row_reader(counts, subset_row=[5, 2, -1])
    assert reader.shape == (3, counts.shape[1])
    np.testing.assert_array_equal(_rows(reader), counts[[5, 2, -1]])

    mask = np.zeros(counts.shape[0], dtype=bool)
    mask[[1, 3]] = True
    np.testing.assert_array_equal(
        _rows(create_row_reader(sp.csr_matrix(counts), subset_row=mask)),
        counts[mask],
    )


def test_subset_rows_invalid(counts):
    with pytest.raises(IndexError):
        create_row_reader(counts, subset_row=[counts.shape[0]])
    with pytest.raises(ValueError):
        create_row_reader(counts, subset_row=np.ones(3, dtype=bool))
    with pytest.raises(TypeError):
        create_row_reader(counts, subset_row=[0.5])


def test_not_a_matrix():
    with pytest.raises(ValueError):
        create_row_reader(np.zeros(3))
