import numpy as np
import pandas as pd
import pytest
import scanpy as sc


def reference_stats(values: np.ndarray, design: np.ndarray):
    """Means and residual variances from an explicit least-squares fit."""
    ncells, ncoefs = design.shape
    beta, *_ = np.linalg.lstsq(design, values.T, rcond=None)
    resid = values.T - design @ beta
    return values.mean(axis=1), (resid**2).sum(axis=0) / (ncells - ncoefs)


@pytest.fixture
def counts():
    rng = np.random.default_rng(0)
    return rng.poisson(lam=3.0, size=(30, 40)).astype(np.int32)


@pytest.fixture
def size_factors():
    rng = np.random.default_rng(1)
    sf = rng.uniform(0.5, 2.0, size=40)
    return sf / sf.mean()


@pytest.fixture
def batch_design():
    batch = np.repeat([0.0, 1.0], 20)
    return np.column_stack([np.ones(40), batch])


@pytest.fixture
def adata(counts, size_factors):
    obs = pd.DataFrame(
        dict(
            batch=pd.Categorical(np.repeat(["a", "b"], 20)),
            sf=size_factors,
        ),
        index=[f"cell{i}" for i in range(40)],
    )
    var = pd.DataFrame(index=[f"gene{i}" for i in range(30)])
    # cells x genes
    return sc.AnnData(X=counts.T.copy(), obs=obs, var=var)
