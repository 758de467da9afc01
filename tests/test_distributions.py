# tests/test_distributions.py

"""
Tests for forecast distribution representations.

Covers the analytical normal representation, empirical sample
distributions, lazily transformed distributions, heterogeneous composites,
positional concatenation and the named summaries used for point forecasts.
"""

import numpy as np
import pytest
from hypothesis import given, settings, strategies as st
from scipy import stats

from distcast.core.exceptions import DistributionError
from distcast.models.distributions import (
    AGGREGATORS, CompositeDistribution, ForecastDistribution, NormalDistribution,
    SampleDistribution, TransformedDistribution, concat_distributions,
    empty_distribution, get_aggregator, mean, quantile
)


class TestNormalDistribution:
    """Tests for the analytical normal representation."""

    @pytest.fixture
    def dist(self) -> NormalDistribution:
        return NormalDistribution([0.0, 1.0, 2.0], [1.0, 2.0, 0.5], dimnames="y")

    def test_moments(self, dist):
        np.testing.assert_allclose(dist.mean(), [0.0, 1.0, 2.0])
        np.testing.assert_allclose(dist.median(), [0.0, 1.0, 2.0])
        np.testing.assert_allclose(dist.variance(), [1.0, 4.0, 0.25])

    def test_quantile_cdf_density(self, dist):
        np.testing.assert_allclose(dist.quantile(0.975),
                                   stats.norm.ppf(0.975, [0.0, 1.0, 2.0], [1.0, 2.0, 0.5]))
        np.testing.assert_allclose(dist.cdf(0.0), stats.norm.cdf(0.0, [0.0, 1.0, 2.0], [1.0, 2.0, 0.5]))
        np.testing.assert_allclose(dist.density([0.0, 1.0, 2.0]),
                                   stats.norm.pdf(0.0, 0.0, [1.0, 2.0, 0.5]))

    def test_scalar_sigma_is_broadcast(self):
        dist = NormalDistribution([1.0, 2.0], 3.0)
        np.testing.assert_allclose(dist.sigma, [3.0, 3.0])

    def test_invalid_sigma(self):
        with pytest.raises(DistributionError, match="non-negative"):
            NormalDistribution([0.0], [-1.0])
        with pytest.raises(DistributionError):
            NormalDistribution([0.0, 1.0], [1.0, 1.0, 1.0])

    def test_invalid_probability(self, dist):
        with pytest.raises(DistributionError):
            dist.quantile(1.5)

    def test_cdf_length_mismatch(self, dist):
        with pytest.raises(DistributionError):
            dist.cdf([0.0, 1.0])

    def test_indexing_and_iteration(self, dist):
        element = dist[1]
        assert isinstance(element, NormalDistribution)
        assert len(element) == 1
        np.testing.assert_allclose(element.mu, [1.0])
        assert element.dimnames == ["y"]

        np.testing.assert_allclose(dist[-1].mu, [2.0])
        np.testing.assert_allclose(dist[1:].mu, [1.0, 2.0])
        np.testing.assert_allclose(dist[[2, 0]].mu, [2.0, 0.0])

        with pytest.raises(IndexError):
            dist[3]

        assert [len(e) for e in dist] == [1, 1, 1]

    def test_repr(self, dist):
        text = repr(dist)
        assert "NormalDistribution[3]" in text
        assert "N(0, 1)" in text

    def test_generate(self, dist):
        draws = dist.generate(2000, random_state=1)
        assert len(draws) == 3
        assert all(d.shape == (2000,) for d in draws)
        np.testing.assert_allclose([d.mean() for d in draws], [0.0, 1.0, 2.0], atol=0.15)

    def test_map_is_lazy(self, dist):
        mapped = dist.map(np.exp, np.log)
        assert isinstance(mapped, TransformedDistribution)
        assert mapped.base is dist
        assert mapped.dimnames == ["y"]


class TestSampleDistribution:
    """Tests for empirical distributions built from draws."""

    @pytest.fixture
    def dist(self) -> SampleDistribution:
        return SampleDistribution([[1.0, 2.0, 3.0, 4.0], [10.0, 20.0, 30.0, 40.0]])

    def test_summaries(self, dist):
        assert dist.is_sample
        np.testing.assert_allclose(dist.mean(), [2.5, 25.0])
        np.testing.assert_allclose(dist.median(), [2.5, 25.0])
        np.testing.assert_allclose(dist.variance(), [5.0 / 3.0, 500.0 / 3.0])
        np.testing.assert_allclose(dist.quantile(0.0), [1.0, 10.0])
        np.testing.assert_allclose(dist.quantile(1.0), [4.0, 40.0])

    def test_empirical_cdf(self, dist):
        np.testing.assert_allclose(dist.cdf(2.0), [0.5, 0.0])
        np.testing.assert_allclose(dist.cdf([4.0, 25.0]), [1.0, 0.5])

    def test_kernel_density(self, rng):
        dist = SampleDistribution([rng.standard_normal(5000)])
        assert dist.density(0.0)[0] == pytest.approx(stats.norm.pdf(0.0), abs=0.03)

    def test_degenerate_density_is_nan(self):
        dist = SampleDistribution([[1.0, 1.0, 1.0]])
        assert np.isnan(dist.density(1.0)[0])

    def test_multivariate_elements(self):
        draws = np.column_stack([np.arange(5.0), 10.0 * np.arange(5.0)])
        dist = SampleDistribution([draws], dimnames=["a", "b"])
        assert dist.is_multivariate
        np.testing.assert_allclose(dist.mean(), [[2.0, 20.0]])
        with pytest.raises(DistributionError, match="multivariate"):
            dist.cdf(1.0)

    def test_invalid_draws(self):
        with pytest.raises(DistributionError):
            SampleDistribution([np.zeros((2, 2, 2))])

    def test_generate_resamples_draws(self, dist):
        draws = dist.generate(100, random_state=0)
        assert np.all(np.isin(draws[0], [1.0, 2.0, 3.0, 4.0]))
        assert np.all(np.isin(draws[1], [10.0, 20.0, 30.0, 40.0]))

    def test_map(self, dist):
        doubled = dist.map(lambda s: 2 * s)
        assert isinstance(doubled, SampleDistribution)
        np.testing.assert_allclose(doubled.samples[1], [20.0, 40.0, 60.0, 80.0])

        with pytest.raises(DistributionError, match="shape"):
            dist.map(lambda s: s[:1])


class TestTransformedDistribution:
    """Tests for lazily transformed analytical distributions."""

    @pytest.fixture
    def base(self) -> NormalDistribution:
        return NormalDistribution([0.0, 1.0], [0.1, 0.2])

    @pytest.fixture
    def lognormal(self, base) -> TransformedDistribution:
        return TransformedDistribution(base, np.exp, np.log)

    def test_median_and_quantiles_are_exact(self, lognormal):
        mu, sigma = np.array([0.0, 1.0]), np.array([0.1, 0.2])
        np.testing.assert_allclose(lognormal.median(), np.exp(mu))
        np.testing.assert_allclose(lognormal.quantile(0.9), np.exp(stats.norm.ppf(0.9, mu, sigma)))

    def test_mean_and_variance_approximations(self, lognormal):
        mu, sigma = np.array([0.0, 1.0]), np.array([0.1, 0.2])
        np.testing.assert_allclose(lognormal.mean(), np.exp(mu + sigma ** 2 / 2), rtol=1e-3)
        np.testing.assert_allclose(lognormal.variance(), np.exp(2 * mu) * sigma ** 2, rtol=1e-3)

    def test_cdf_and_density_use_inverse(self, lognormal):
        mu, sigma = np.array([0.0, 1.0]), np.array([0.1, 0.2])
        q = np.array([1.05, 2.5])
        np.testing.assert_allclose(lognormal.cdf(q), stats.lognorm.cdf(q, s=sigma, scale=np.exp(mu)),
                                   rtol=1e-8)
        np.testing.assert_allclose(lognormal.density(q), stats.lognorm.pdf(q, s=sigma, scale=np.exp(mu)),
                                   rtol=1e-5)

    def test_decreasing_transformation(self, base):
        negated = TransformedDistribution(base, np.negative, np.negative)
        np.testing.assert_allclose(negated.quantile(0.9), -base.quantile(0.1))
        np.testing.assert_allclose(negated.cdf(0.0), 1 - base.cdf(0.0))

    def test_missing_inverse(self, base):
        dist = TransformedDistribution(base, np.exp)
        with pytest.raises(DistributionError, match="inverse"):
            dist.cdf(1.0)
        with pytest.raises(DistributionError, match="inverse"):
            dist.density(1.0)

    def test_generate_transforms_draws(self, lognormal):
        draws = lognormal.generate(500, random_state=3)
        assert all(np.all(d > 0) for d in draws)

    def test_invalid_base(self):
        with pytest.raises(DistributionError):
            TransformedDistribution([0.0, 1.0], np.exp)

    def test_elements_keep_transformation(self, lognormal):
        element = lognormal[1]
        assert isinstance(element, TransformedDistribution)
        np.testing.assert_allclose(element.median(), [np.e])


class TestConcatenation:
    """Tests for positional concatenation of distributions."""

    def test_same_kind_is_merged(self):
        a = NormalDistribution([0.0], [1.0])
        b = NormalDistribution([1.0, 2.0], [1.0, 1.0])
        result = concat_distributions([a, b], dimnames="y")
        assert isinstance(result, NormalDistribution)
        np.testing.assert_allclose(result.mu, [0.0, 1.0, 2.0])
        assert result.dimnames == ["y"]

    def test_mixed_kinds_build_a_composite(self):
        a = NormalDistribution([0.0], [1.0])
        b = SampleDistribution([[1.0, 3.0]])
        result = a.concat(b)
        assert isinstance(result, CompositeDistribution)
        assert len(result) == 2
        assert not result.is_sample
        np.testing.assert_allclose(result.mean(), [0.0, 2.0])
        np.testing.assert_allclose(result.cdf([0.0, 3.0]), [0.5, 1.0])

    def test_composite_elements_are_independent_copies(self):
        a = NormalDistribution([0.0], [1.0], dimnames="a")
        composite = CompositeDistribution([a, SampleDistribution([[1.0]])], dimnames="b")
        element = composite[0]
        assert element.dimnames == ["b"]
        assert a.dimnames == ["a"]

    def test_transformed_with_different_functions(self):
        base = NormalDistribution([0.0], [1.0])
        a = TransformedDistribution(base, np.exp, np.log)
        b = TransformedDistribution(base, np.square)
        assert isinstance(concat_distributions([a, b]), CompositeDistribution)
        assert isinstance(concat_distributions([a, a]), TransformedDistribution)

    def test_empty_inputs_are_skipped(self):
        a = NormalDistribution([1.0], [1.0], dimnames="y")
        result = concat_distributions([empty_distribution(), a])
        assert isinstance(result, NormalDistribution)
        assert result.dimnames == ["y"]

        empty = concat_distributions([], dimnames=["y"])
        assert len(empty) == 0
        assert empty.dimnames == ["y"]

    def test_rejects_non_distributions(self):
        with pytest.raises(DistributionError):
            concat_distributions([np.zeros(2)])


class TestAggregators:
    """Tests for the named point forecast summaries."""

    def test_registry(self):
        assert set(AGGREGATORS) == {"mean", "median", "variance"}
        assert get_aggregator("mean") is mean

    def test_unknown_name(self):
        with pytest.raises(KeyError, match="Available"):
            get_aggregator("mode")

    def test_quantile_factory(self):
        q10 = quantile(0.1)
        assert q10.__name__ == "quantile_0.1"
        dist = NormalDistribution([0.0], [1.0])
        np.testing.assert_allclose(q10(dist), stats.norm.ppf(0.1))


@given(
    mu=st.floats(min_value=-5.0, max_value=5.0, allow_nan=False),
    sigma=st.floats(min_value=0.01, max_value=2.0, allow_nan=False),
    p=st.floats(min_value=0.01, max_value=0.99, allow_nan=False),
)
@settings(deadline=None)
def test_monotone_transformation_preserves_quantiles(mu, sigma, p):
    """Quantiles of a monotone transformation are the transformed quantiles."""
    base = NormalDistribution([mu], [sigma])
    dist = TransformedDistribution(base, np.exp, np.log)
    expected = np.exp(stats.norm.ppf(p, mu, sigma))
    np.testing.assert_allclose(dist.quantile(p), [expected], rtol=1e-10)
    np.testing.assert_allclose(dist.cdf(expected), [p], rtol=1e-6)


def test_forecast_distribution_is_abstract():
    with pytest.raises(TypeError):
        ForecastDistribution()
