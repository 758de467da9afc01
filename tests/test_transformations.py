# tests/test_transformations.py

"""
Tests for response transformations and their binding to future data.
"""

import numpy as np
import pandas as pd
import pytest
from hypothesis import given, settings, strategies as st

from distcast.core.exceptions import TransformationError, UnsupportedTransformError
from distcast.models.time_series import (
    apply_binding, bind_transformation, bind_transformations, box_cox,
    check_transformations, classify_transformations, identity,
    log_transformation, scaled_by, transformation
)


class TestTransformationFactories:
    """Tests for the built-in transformations."""

    def test_identity(self):
        t = identity()
        assert t.is_identity
        binding = bind_transformation(t)
        values = np.array([1.0, 2.0])
        out = apply_binding(binding, values)
        np.testing.assert_array_equal(out, values)
        assert out is not values

    def test_log(self):
        binding = bind_transformation(log_transformation())
        np.testing.assert_allclose(binding.shared.forward([1.0, np.e]), [0.0, 1.0])
        np.testing.assert_allclose(binding.shared.inverse([0.0, 1.0]), [1.0, np.e])

    def test_log_with_base(self):
        binding = bind_transformation(log_transformation(base=10))
        np.testing.assert_allclose(binding.shared.forward([100.0]), [2.0])
        np.testing.assert_allclose(binding.shared.inverse([3.0]), [1000.0])

    def test_box_cox_uses_context(self):
        t = box_cox(0.5)
        assert t.context == {"lmbda": 0.5}
        binding = bind_transformation(t)
        assert not binding.row_varying
        np.testing.assert_allclose(binding.shared.forward([4.0]), [2.0])
        np.testing.assert_allclose(binding.shared.inverse([2.0]), [4.0])

    def test_custom_transformation_name(self):
        t = transformation(np.sqrt, np.square)
        assert t.name == "sqrt"
        assert str(t) == "sqrt"
        assert not t.is_identity


class TestBinding:
    """Tests for binding transformations against future rows."""

    @pytest.fixture
    def future(self) -> pd.DataFrame:
        return pd.DataFrame({"t": [1, 2, 3], "pop": [1.0, 2.0, 5.0], "other": ["a", "b", "c"]})

    def test_row_varying_binding(self, future):
        binding = bind_transformation(scaled_by("pop"), future)
        assert binding.row_varying
        assert len(binding) == 3
        assert binding.for_row(2).env == {"pop": 5.0}
        np.testing.assert_allclose(apply_binding(binding, [10.0, 10.0, 10.0]), [10.0, 5.0, 2.0])
        np.testing.assert_allclose(apply_binding(binding, [1.0, 1.0, 1.0], direction="inverse"),
                                   [1.0, 2.0, 5.0])

    def test_values_follow_row_positions(self, future):
        binding = bind_transformation(scaled_by("pop"), future)
        out = apply_binding(binding, [10.0, 10.0, 10.0, 10.0], rows=[2, 0, 2, 1], direction="forward")
        np.testing.assert_allclose(out, [2.0, 10.0, 2.0, 5.0])

    def test_missing_covariate(self):
        with pytest.raises(TransformationError) as excinfo:
            bind_transformation(scaled_by("pop"), pd.DataFrame({"t": [1]}))
        error = excinfo.value
        assert error.missing == ["pop"]
        assert str(error).startswith(
            "Unable to find all required variables to back-transform the forecasts (missing pop)."
        )
        assert "`future_data`" in str(error)

    def test_missing_covariate_names_the_data(self):
        with pytest.raises(TransformationError, match="specifying `data`"):
            bind_transformation(scaled_by("pop"), pd.DataFrame({"t": [1]}), data_name="data")

    def test_context_supplies_covariate(self, future):
        t = transformation(lambda x, pop: x / pop, lambda x, pop: x * pop,
                           required_covariates=["pop"], context={"pop": 10.0})
        shared = bind_transformation(t)
        assert not shared.row_varying
        np.testing.assert_allclose(shared.shared.forward([20.0]), [2.0])

        # Row values take precedence over the declaring context
        per_row = bind_transformation(t, future)
        assert per_row.row_varying
        np.testing.assert_allclose(apply_binding(per_row, [20.0, 20.0, 20.0]), [20.0, 10.0, 4.0])

    def test_environment_holds_only_declared_names(self, future):
        t = transformation(lambda x, pop, k: k * x / pop, lambda x, pop, k: x * pop / k,
                           required_covariates=["pop"], context={"k": 2.0})
        binding = bind_transformation(t, future)
        assert set(binding.for_row(0).env) == {"pop", "k"}
        np.testing.assert_allclose(apply_binding(binding, [1.0, 1.0, 1.0]), [2.0, 1.0, 0.4])

    def test_invalid_direction(self, future):
        binding = bind_transformation(scaled_by("pop"), future)
        with pytest.raises(ValueError):
            apply_binding(binding, [1.0, 1.0, 1.0], direction="sideways")

    def test_bind_several(self, future):
        bindings = bind_transformations([identity(), scaled_by("pop")], future)
        assert [b.row_varying for b in bindings] == [False, True]


class TestTransformationChecks:
    """Tests for the multivariate transformation restriction."""

    def test_classification(self):
        assert classify_transformations([identity(), log_transformation()]) == [True, False]

    def test_position_of_transformed_response(self):
        assert check_transformations([identity(), identity()]) == -1
        assert check_transformations([identity(), log_transformation()]) == 1

    def test_several_transformed_responses(self):
        with pytest.raises(UnsupportedTransformError,
                           match="Transformations of multivariate forecasts are not yet supported"):
            check_transformations([log_transformation(), box_cox(0.5)])


@given(
    values=st.lists(st.floats(min_value=0.1, max_value=100.0, allow_nan=False), min_size=1, max_size=20),
    lmbda=st.one_of(st.just(0.0), st.floats(min_value=-1.0, max_value=-0.05),
                    st.floats(min_value=0.05, max_value=2.0)),
)
@settings(deadline=None)
def test_box_cox_round_trip(values, lmbda):
    """Box-Cox forward and inverse transformations undo each other."""
    binding = bind_transformation(box_cox(lmbda))
    x = np.asarray(values)
    forward = apply_binding(binding, x, direction="forward")
    np.testing.assert_allclose(apply_binding(binding, forward, direction="inverse"), x, rtol=1e-8)
