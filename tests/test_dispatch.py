# tests/test_dispatch.py

"""
Tests for forecasting tables of fitted models.

Covers output ordering and layout, per-series and scenario future data,
sequential and parallel dispatch with fault isolation, cancellation, the
asynchronous entry point and the ``forecast`` front end.
"""

import time

import numpy as np
import pandas as pd
import pytest

from distcast.core.config import set_config
from distcast.core.exceptions import (
    DataError, ForecastCancelled, ForecastError, ForecastWarning, NumericError,
    ParameterError, SpecialsEvaluationError
)
from distcast.models.time_series import (
    ModelTable, SpecialsEvaluator, forecast, forecast_model_table,
    forecast_model_table_async, regressor, scenarios
)
from distcast.models.time_series import dispatch

VALUE_COLUMNS = ["region", ".model", "t", ".mean"]


class TestModelTable:
    """Construction and validation of model tables."""

    def test_cells_in_row_then_column_order(self, model_table):
        cells = model_table.cells()
        assert [(k["region"], name) for k, name, _ in cells] == [
            ("north", "base"), ("north", "high"), ("south", "base"), ("south", "high")
        ]
        assert len(model_table) == 2

    def test_rejects_non_models(self):
        data = pd.DataFrame({"region": ["north"], "base": ["not a model"]})
        with pytest.raises(ParameterError, match="expected FittedModel"):
            ModelTable(data, key=["region"], models=["base"])

    def test_requires_model_columns(self, make_stub_model):
        data = pd.DataFrame({"region": ["north"], "base": [make_stub_model()]})
        with pytest.raises(ParameterError):
            ModelTable(data, key=["region"], models=[])
        with pytest.raises(DataError):
            ModelTable(data, key=["country"], models=["base"])


class TestForecastModelTable:
    """Layout and ordering of model table forecasts."""

    def test_layout(self, model_table):
        result = forecast_model_table(model_table, h=2)

        assert list(result.columns) == ["region", ".model", "t", "y", ".mean"]
        assert result["region"].tolist() == ["north"] * 4 + ["south"] * 4
        assert result[".model"].tolist() == ["base", "base", "high", "high"] * 2
        assert result["t"].tolist() == [20, 21] * 4
        np.testing.assert_allclose(result[".mean"],
                                   [10, 11, 20, 21, 30, 31, 40, 41])
        assert result.attrs["key"] == ["region", ".model"]
        assert result.attrs["response"] == ["y"]

    def test_point_forecasts_apply_to_every_cell(self, model_table):
        result = forecast_model_table(model_table, h=1, point_forecast={".median": "median"})
        assert ".median" in result.columns
        assert ".mean" not in result.columns

    def test_parallel_matches_sequential(self, model_table):
        sequential = forecast_model_table(model_table, h=3, parallel=False)
        parallel = forecast_model_table(model_table, h=3, parallel=True, max_workers=3)
        pd.testing.assert_frame_equal(sequential[VALUE_COLUMNS], parallel[VALUE_COLUMNS])

    def test_parallel_order_ignores_completion_order(self, make_stub_model):
        data = pd.DataFrame({
            "region": ["north", "south", "east"],
            "base": [make_stub_model(level=1.0, delay=0.2),
                     make_stub_model(level=2.0, delay=0.1),
                     make_stub_model(level=3.0)],
        })
        table = ModelTable(data, key=["region"], models=["base"])
        result = forecast_model_table(table, h=1, parallel=True, max_workers=3)
        assert result["region"].tolist() == ["north", "south", "east"]
        np.testing.assert_allclose(result[".mean"], [1.0, 2.0, 3.0])

    def test_parallel_from_configuration(self, model_table):
        set_config("performance", "parallel", True)
        set_config("performance", "max_workers", 2)
        result = forecast_model_table(model_table, h=1)
        assert len(result) == 4

    def test_invalid_max_workers(self, model_table):
        with pytest.raises(ParameterError):
            forecast_model_table(model_table, h=1, parallel=True, max_workers=0)

    def test_requires_model_table(self, make_stub_model):
        with pytest.raises(ParameterError):
            forecast_model_table(make_stub_model(), h=1)

    def test_invalid_future_data(self, model_table):
        with pytest.raises(ParameterError):
            forecast_model_table(model_table, future_data={"t": [20]})


class TestFutureData:
    """Shared, per-series and scenario future data."""

    def test_shared_future_data(self, model_table):
        result = forecast_model_table(model_table, future_data=pd.DataFrame({"t": [50, 51, 52]}))
        assert len(result) == 12
        assert result["t"].tolist() == [50, 51, 52] * 4

    def test_future_data_split_by_key(self, model_table):
        future = pd.DataFrame({"region": ["north", "north", "south"], "t": [20, 21, 20]})
        result = forecast_model_table(model_table, future_data=future)

        assert list(result.columns) == ["region", ".model", "t", "y", ".mean"]
        assert result["region"].tolist() == ["north"] * 4 + ["south"] * 2
        assert result["t"].tolist() == [20, 21, 20, 21, 20, 20]

    def test_redundant_horizon_warns_once(self, model_table):
        with pytest.warns(ForecastWarning) as record:
            forecast_model_table(model_table, h=5, future_data=pd.DataFrame({"t": [20]}))
        ignored = [w for w in record if "will be ignored" in str(w.message)]
        assert len(ignored) == 1

    def test_scenarios(self, model_table):
        future = scenarios(low=pd.DataFrame({"t": [20]}), high=pd.DataFrame({"t": [20, 21]}))
        result = forecast_model_table(model_table, future_data=future)

        assert result.columns[0] == ".scenario"
        assert result[".scenario"].tolist() == ["low"] * 4 + ["high"] * 8
        assert result.attrs["key"] == [".scenario", "region", ".model"]

    def test_scenario_column_name(self, model_table):
        future = scenarios(names_to="case", only=pd.DataFrame({"t": [20]}))
        result = forecast_model_table(model_table, future_data=future)
        assert result["case"].tolist() == ["only"] * 4

    def test_scenarios_validation(self):
        with pytest.raises(ParameterError):
            scenarios()
        with pytest.raises(ParameterError):
            scenarios(low=[20])


class TestFaultIsolation:
    """Failures are attributed to the failing cell."""

    @pytest.fixture
    def failing_table(self, make_stub_model):
        def _make(errors, delays=None):
            delays = delays or [0.0] * len(errors)
            data = pd.DataFrame({
                "region": [f"r{i}" for i in range(len(errors))],
                "base": [make_stub_model(error=e, delay=d) for e, d in zip(errors, delays)],
            })
            return ModelTable(data, key=["region"], models=["base"])
        return _make

    @pytest.mark.parametrize("parallel", [False, True])
    def test_foreign_errors_are_wrapped(self, failing_table, parallel):
        table = failing_table([None, RuntimeError("boom"), None])
        with pytest.raises(ForecastError) as excinfo:
            forecast_model_table(table, h=1, parallel=parallel)

        error = excinfo.value
        assert error.key == {"region": "r1"}
        assert error.model == "base"
        assert isinstance(error.__cause__, RuntimeError)
        assert "boom" in str(error)
        assert "Key: region='r1'" in str(error)

    @pytest.mark.parametrize("parallel", [False, True])
    def test_toolbox_errors_keep_their_type(self, failing_table, parallel):
        table = failing_table([None, None, NumericError("overflow in forecast")])
        with pytest.raises(NumericError) as excinfo:
            forecast_model_table(table, h=1, parallel=parallel)
        assert excinfo.value.key == {"region": "r2"}
        assert excinfo.value.model == "base"

    def test_sequential_stops_at_first_failure(self, failing_table):
        table = failing_table([RuntimeError("first"), None])
        with pytest.raises(ForecastError):
            forecast_model_table(table, h=1)
        later = table.data["base"].iloc[1]
        assert later.fit.calls == []

    def test_parallel_reports_earliest_failure_in_input_order(self, failing_table):
        table = failing_table([RuntimeError("slow"), None, RuntimeError("fast")],
                              delays=[0.3, 0.0, 0.0])
        with pytest.raises(ForecastError) as excinfo:
            forecast_model_table(table, h=1, parallel=True, max_workers=3)
        assert excinfo.value.key == {"region": "r0"}
        assert "slow" in str(excinfo.value)

    @pytest.mark.parametrize("parallel", [False, True])
    def test_cancellation_is_not_attributed(self, make_stub_model, parallel):
        def interrupted(x):
            raise KeyboardInterrupt

        data = pd.DataFrame({
            "region": ["north", "south"],
            "base": [make_stub_model(),
                     make_stub_model(specials=SpecialsEvaluator([regressor("x", func=interrupted)]))],
        })
        table = ModelTable(data, key=["region"], models=["base"])
        with pytest.raises(ForecastCancelled):
            forecast_model_table(table, future_data=pd.DataFrame({"t": [20], "x": [1.0]}),
                                 parallel=parallel)

    @pytest.mark.parametrize("parallel", [False, True])
    def test_missing_regressor_in_one_series(self, make_stub_model, parallel):
        data = pd.DataFrame({
            "region": ["a", "b", "c"],
            "m1": [make_stub_model(),
                   make_stub_model(specials=SpecialsEvaluator([regressor("x")])),
                   make_stub_model()],
            "m2": [make_stub_model() for _ in range(3)],
        })
        table = ModelTable(data, key=["region"], models=["m1", "m2"])
        future = pd.DataFrame({"region": ["a", "a", "b", "b", "c", "c"], "t": [20, 21] * 3})

        with pytest.raises(SpecialsEvaluationError) as excinfo:
            forecast_model_table(table, future_data=future, parallel=parallel)
        error = excinfo.value
        assert error.key == {"region": "b"}
        assert error.model == "m1"
        assert error.missing == ["x"]
        assert "Key: region='b'" in str(error)

        result = forecast_model_table(table, future_data=future.assign(x=1.0), parallel=parallel)
        assert len(result) == 12
        assert result["x"].tolist() == [1.0] * 12

    def test_interrupt_drops_queued_cells(self, make_stub_model, monkeypatch):
        models = [make_stub_model(delay=0.2) for _ in range(20)]
        data = pd.DataFrame({"region": [f"r{i}" for i in range(20)], "base": models})
        table = ModelTable(data, key=["region"], models=["base"])

        def interrupted_wait(futures, return_when):
            time.sleep(0.1)
            raise KeyboardInterrupt

        monkeypatch.setattr(dispatch, "wait", interrupted_wait)
        start = time.perf_counter()
        with pytest.raises(ForecastCancelled):
            forecast_model_table(table, h=1, parallel=True, max_workers=2)
        assert time.perf_counter() - start < 1.0

        time.sleep(0.5)
        assert sum(1 for m in models if m.fit.calls) <= 2

    @pytest.mark.parametrize("first", ["slow failure", "fast failure"])
    def test_cancellation_outranks_earlier_failures(self, make_stub_model, first):
        if first == "slow failure":
            failing = make_stub_model(error=RuntimeError("boom"), delay=0.2)
            interrupting = make_stub_model(error=KeyboardInterrupt())
        else:
            failing = make_stub_model(specials=SpecialsEvaluator([regressor("z")]))
            interrupting = make_stub_model(error=KeyboardInterrupt(), delay=0.2)

        data = pd.DataFrame({"region": ["a", "b"], "base": [failing, interrupting]})
        table = ModelTable(data, key=["region"], models=["base"])
        with pytest.raises(ForecastCancelled):
            forecast_model_table(table, h=1, parallel=True, max_workers=2)


@pytest.mark.asyncio
async def test_forecast_model_table_async(model_table):
    """Test asynchronous model table forecasting."""
    result = await forecast_model_table_async(model_table, h=2)
    assert len(result) == 8
    assert result[".model"].tolist() == ["base", "base", "high", "high"] * 2


@pytest.mark.asyncio
async def test_forecast_model_table_async_propagates_errors(make_stub_model):
    data = pd.DataFrame({"region": ["north"], "base": [make_stub_model(error=RuntimeError("boom"))]})
    table = ModelTable(data, key=["region"], models=["base"])
    with pytest.raises(ForecastError):
        await forecast_model_table_async(table, h=1)


class TestForecastFrontEnd:
    """The ``forecast`` entry point."""

    def test_dispatches_on_type(self, make_stub_model, model_table):
        assert len(forecast(make_stub_model(), h=2)) == 2
        assert len(forecast(model_table, h=2)) == 8

    def test_forecasting_a_forecast_table(self, make_stub_model):
        table = forecast(make_stub_model(), h=2)
        with pytest.raises(ForecastError, match=r"Did you try to forecast a forecast table\?"):
            forecast(table, h=2)

    def test_unsupported_object(self):
        with pytest.raises(ParameterError):
            forecast([1, 2, 3], h=2)
