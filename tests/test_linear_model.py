import numpy as np
import pytest
from scipy import linalg

from scanpy_residuals.preprocessing import ProjectionFit, QRLinearModelFit


def _rss(y, design):
    beta, *_ = np.linalg.lstsq(design, y, rcond=None)
    return np.sum((y - design @ beta) ** 2)


def test_qr_fit_dimensions(batch_design):
    fit = QRLinearModelFit.from_design(batch_design)
    assert fit.ncells == 40
    assert fit.ncoefs == 2


def test_qr_fit_from_raw_factors():
    design = np.column_stack([np.ones(6), np.arange(6.0)])
    (qr, tau), _ = linalg.qr(design, mode="raw")
    fit = QRLinearModelFit(qr, tau)
    y = np.array([1.0, 3.0, 2.0, 5.0, 4.0, 6.0])
    x = y.copy()
    fit.multiply(x)
    np.testing.assert_allclose(np.sum(x[2:] ** 2), _rss(y, design))


def test_qr_fit_residual_block_gives_rss(batch_design):
    rng = np.random.default_rng(3)
    fit = QRLinearModelFit.from_design(batch_design)
    for _ in range(5):
        y = rng.normal(size=40)
        x = y.copy()
        fit.multiply(x)
        np.testing.assert_allclose(np.sum(x[2:] ** 2), _rss(y, batch_design))


def test_qr_fit_preserves_norm(batch_design):
    y = np.linspace(-3, 5, 40)
    x = y.copy()
    QRLinearModelFit.from_design(batch_design).multiply(x)
    np.testing.assert_allclose(np.dot(x, x), np.dot(y, y))


def test_intercept_only_effect_is_scaled_mean():
    y = np.array([1.0, 2.0, 3.0, 4.0])
    x = y.copy()
    QRLinearModelFit.from_design(np.ones((4, 1))).multiply(x)
    np.testing.assert_allclose(abs(x[0]), y.sum() / 2.0)
    np.testing.assert_allclose(np.sum(x[1:] ** 2), 5.0)


def test_projection_fit_matches_qr_fit(batch_design):
    y = np.random.default_rng(4).normal(size=40)
    x_qr = y.copy()
    x_proj = y.copy()
    QRLinearModelFit.from_design(batch_design).multiply(x_qr)
    ProjectionFit.from_design(batch_design).multiply(x_proj)
    np.testing.assert_allclose(np.sum(x_qr[2:] ** 2), np.sum(x_proj[2:] ** 2))


def test_no_residual_df():
    with pytest.raises(ValueError, match="residual d.f."):
        QRLinearModelFit.from_design(np.ones((3, 3)))
    with pytest.raises(ValueError, match="residual d.f."):
        ProjectionFit(np.eye(3), ncoefs=3)


def test_invalid_factors():
    with pytest.raises(ValueError):
        QRLinearModelFit(np.ones((4, 2)), np.ones(3))
    with pytest.raises(ValueError):
        QRLinearModelFit.from_design(np.ones(4))
    with pytest.raises(ValueError):
        ProjectionFit(np.ones((4, 3)), ncoefs=1)
