"""
Diagnostics tests - effective sample size, split R-hat and summaries.

Run with: pytest tests/test_diagnostics.py -v
"""

import logging
import warnings

import numpy as np
import pandas as pd
import pytest
import torch

from polywalk import ColumnSink, ESSResult, effective_sample_size, print_diagnostics, split_rhat, summary_table
from polywalk.diagnostics import as_sample_matrix, autocorrelation


def _ar1(n, rho, seed=0):
    rng = np.random.default_rng(seed)
    x = np.empty(n)
    x[0] = rng.standard_normal()
    for t in range(1, n):
        x[t] = rho * x[t - 1] + np.sqrt(1 - rho ** 2) * rng.standard_normal()
    return x


# ============================================================================
# EFFECTIVE SAMPLE SIZE
# ============================================================================

class TestEffectiveSampleSize:

    def test_iid_scores_near_n(self):
        n = 2000
        samples = np.random.default_rng(1).standard_normal((3, n))
        ess = effective_sample_size(samples)
        assert isinstance(ess, ESSResult)
        assert ess.per_coordinate.shape == (3,)
        assert ess.minimum == ess.per_coordinate.min()
        assert 0.7 * n < ess.minimum <= n

    def test_correlated_chain_scores_low(self):
        n = 5000
        x = _ar1(n, 0.9)
        ess = effective_sample_size(x[np.newaxis, :])
        # n (1 - rho) / (1 + rho) is about 263
        assert 0.02 * n < ess.minimum < 0.15 * n

    def test_constant_chain_is_zero(self):
        samples = np.tile(np.array([[0.1], [2.0]]), (1, 100))
        ess = effective_sample_size(samples)
        assert np.all(ess.per_coordinate == 0.0)
        assert ess.minimum == 0.0

    def test_underflowing_variance_is_zero(self):
        samples = np.zeros((1, 100))
        samples[0, 50] = 1e-200
        with warnings.catch_warnings():
            warnings.simplefilter('error')
            ess = effective_sample_size(samples)
        assert ess.per_coordinate[0] == 0.0
        assert ess.minimum == 0.0
        assert np.all(np.isnan(autocorrelation(samples[0])))

    def test_one_constant_coordinate_sets_minimum(self):
        samples = np.random.default_rng(2).standard_normal((2, 500))
        samples[1] = 3.0
        ess = effective_sample_size(samples)
        assert ess.per_coordinate[0] > 100
        assert ess.minimum == 0.0

    def test_short_chains(self):
        assert effective_sample_size(np.zeros((2, 1))).minimum == 0.0
        assert effective_sample_size(np.zeros((2, 0))).minimum == 0.0

    def test_non_finite_values_do_not_raise(self):
        samples = np.random.default_rng(3).standard_normal((1, 50))
        samples[0, 10] = np.nan
        assert effective_sample_size(samples).minimum == 0.0

    def test_clipped_to_n(self):
        # an alternating chain has negative lag-one correlation
        x = np.tile([1.0, -1.0], 200)
        ess = effective_sample_size(x[np.newaxis, :])
        assert ess.minimum == 400

    def test_max_lag_cutoff(self):
        x = _ar1(3000, 0.95, seed=4)
        full = effective_sample_size(x[np.newaxis, :]).minimum
        cut = effective_sample_size(x[np.newaxis, :], max_lag=1).minimum
        assert cut > full
        assert cut == pytest.approx(3000 / (1 + 2 * autocorrelation(x)[1]))

    def test_accepts_sinks_and_tensors(self):
        data = np.random.default_rng(5).standard_normal((2, 300))
        sink = ColumnSink(2, 300)
        for i in range(300):
            sink.push(data[:, i])
        expected = effective_sample_size(data).per_coordinate
        assert np.allclose(effective_sample_size(sink).per_coordinate, expected)
        assert np.allclose(effective_sample_size(torch.from_numpy(data)).per_coordinate, expected)


# ============================================================================
# HELPERS
# ============================================================================

class TestHelpers:

    def test_autocorrelation_normalized(self):
        x = np.random.default_rng(6).standard_normal(256)
        acf = autocorrelation(x)
        assert acf[0] == pytest.approx(1.0)
        assert np.all(np.abs(acf) <= 1.0 + 1e-12)

    def test_autocorrelation_matches_direct_sum(self):
        x = np.random.default_rng(7).standard_normal(100)
        y = x - x.mean()
        direct = np.sum(y[:-3] * y[3:]) / np.sum(y * y)
        assert autocorrelation(x)[3] == pytest.approx(direct)

    def test_as_sample_matrix_rejects_3d(self):
        with pytest.raises(ValueError):
            as_sample_matrix(np.zeros((2, 2, 2)))

    def test_vector_is_one_coordinate(self):
        assert as_sample_matrix(np.arange(5.0)).shape == (1, 5)


# ============================================================================
# SPLIT R-HAT AND SUMMARIES
# ============================================================================

class TestSummaries:

    def test_split_rhat_iid_near_one(self):
        samples = np.random.default_rng(8).standard_normal((2, 2000))
        rhat = split_rhat(samples)
        assert np.all(np.abs(rhat - 1.0) < 0.05)

    def test_split_rhat_detects_drift(self):
        samples = np.concatenate([np.zeros(500), 5.0 * np.ones(500)])[np.newaxis, :]
        samples = samples + 0.1 * np.random.default_rng(9).standard_normal(samples.shape)
        assert split_rhat(samples)[0] > 2.0

    def test_split_rhat_degenerate(self):
        assert np.all(np.isnan(split_rhat(np.ones((2, 100)))))
        assert np.all(np.isnan(split_rhat(np.zeros((2, 3)))))

    def test_summary_table(self):
        samples = np.random.default_rng(10).standard_normal((3, 400))
        table = summary_table(samples)
        assert isinstance(table, pd.DataFrame)
        assert list(table.columns) == ['mean', 'std', 'ess', 'r_hat']
        assert list(table.index) == ['x0', 'x1', 'x2']
        assert np.allclose(table['mean'].to_numpy(), samples.mean(axis=1))

    def test_print_diagnostics_to_logger(self, caplog):
        samples = np.random.default_rng(11).standard_normal((2, 300))
        logger = logging.getLogger('polywalk')
        with caplog.at_level(logging.INFO, logger='polywalk'):
            ess = print_diagnostics(samples, logger=logger)
        assert ess.minimum > 0
        assert any('min ESS' in r.getMessage() for r in caplog.records)

    def test_print_diagnostics_warns_on_stuck_chain(self, caplog):
        with caplog.at_level(logging.INFO, logger='polywalk'):
            print_diagnostics(np.ones((2, 50)))
        out = caplog.text
        assert all(r.name == 'polywalk' for r in caplog.records)
        assert 'min ESS: 0.0' in out
        assert '[WARN]' in out
