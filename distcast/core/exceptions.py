'''
Custom exception classes for distcast.

This module defines the hierarchy of exception and warning classes used
throughout the toolbox. Each exception type covers a specific category of
failure in the forecast pipeline, carries the attributes needed to diagnose
it, and renders a message that includes the details and context supplied by
the caller.

The hierarchy has a single root, ``DistcastError``, so callers can catch every
toolbox failure in one place while still being able to handle, for example,
a missing regressor separately from an unsupported transformation.
Cancellation sits outside that root: ``ForecastCancelled`` derives from
``KeyboardInterrupt`` and is never caught by ``except Exception`` handlers.
'''

from typing import Any, Dict, List, Optional, Tuple, Union
import inspect
from pathlib import Path


class DistcastError(Exception):
    """Base exception class for all distcast errors.

    Attributes:
        message: The error message
        details: Additional details about the error
        context: Dictionary containing contextual information about the error
    """

    def __init__(self,
                 message: str,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        """Initialize the DistcastError.

        Args:
            message: The primary error message
            details: Additional details about the error
            context: Dictionary containing contextual information about the error
        """
        self.message = message
        self.details = details
        self.context = context or {}
        self.location: Optional[str] = None
        self.key: Optional[Dict[str, Any]] = None
        self.model: Optional[str] = None

        # Add caller information for better debugging
        frame = inspect.currentframe()
        if frame:
            try:
                frame = frame.f_back
                # Skip the __init__ frames of subclasses
                while frame is not None and frame.f_code.co_name == "__init__":
                    frame = frame.f_back
                if frame:
                    caller_info = inspect.getframeinfo(frame)
                    self.location = f"{Path(caller_info.filename).name}:{caller_info.lineno}"
            finally:
                del frame  # Avoid reference cycles

        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Build the full error message from message, details and context."""
        full_message = self.message
        if self.details:
            full_message += f"\n\nDetails: {self.details}"

        if self.context:
            context_str = "\n".join(f"  {k}: {v}" for k, v in self.context.items())
            full_message += f"\n\nContext:\n{context_str}"

        if self.location:
            full_message += f"\n\nLocation: {self.location}"

        return full_message

    def add_context(self, **context: Any) -> "DistcastError":
        """Add entries to the error context and refresh the rendered message.

        Args:
            **context: Context entries to add

        Returns:
            DistcastError: The same exception, for use in ``raise`` statements
        """
        self.context.update(context)
        self.args = (self._format_message(),)
        return self

    def attribute_to(self, key: Dict[str, Any], model: str) -> "DistcastError":
        """Record the model table cell this error came from.

        Args:
            key: Mapping of key column names to the values of the failing row
            model: Name of the failing model column

        Returns:
            DistcastError: The same exception
        """
        self.key = dict(key)
        self.model = model
        key_str = ", ".join(f"{k}={v!r}" for k, v in self.key.items()) or "<no key>"
        return self.add_context(Key=key_str, Model=model)

    def __str__(self) -> str:
        return self.args[0] if self.args else self.message


class ParameterError(DistcastError):
    """Exception raised for invalid call parameters.

    Attributes:
        param_name: The name of the parameter that caused the error
        param_value: The invalid parameter value
        constraint: Description of the constraint that was violated
    """

    def __init__(self,
                 message: str,
                 param_name: Optional[str] = None,
                 param_value: Optional[Any] = None,
                 constraint: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.param_name = param_name
        self.param_value = param_value
        self.constraint = constraint

        context_dict = context or {}
        if param_name:
            context_dict["Parameter"] = param_name
        if param_value is not None:
            context_dict["Value"] = param_value
        if constraint:
            context_dict["Constraint"] = constraint

        super().__init__(message, details, context_dict)


class DimensionError(DistcastError):
    """Exception raised when lengths or shapes do not line up.

    Attributes:
        array_name: The name of the array that caused the error
        expected_shape: The expected shape of the array
        actual_shape: The actual shape of the array
    """

    def __init__(self,
                 message: str,
                 array_name: Optional[str] = None,
                 expected_shape: Optional[Union[Tuple[int, ...], str]] = None,
                 actual_shape: Optional[Tuple[int, ...]] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.array_name = array_name
        self.expected_shape = expected_shape
        self.actual_shape = actual_shape

        context_dict = context or {}
        if array_name:
            context_dict["Array"] = array_name
        if expected_shape is not None:
            context_dict["Expected Shape"] = expected_shape
        if actual_shape is not None:
            context_dict["Actual Shape"] = actual_shape

        super().__init__(message, details, context_dict)


class PointForecastError(DimensionError):
    """Exception raised when a point forecast summary has the wrong length.

    Attributes:
        summary: Name of the point forecast that failed validation
    """

    def __init__(self,
                 message: str,
                 summary: Optional[str] = None,
                 expected_length: Optional[int] = None,
                 actual_length: Optional[int] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.summary = summary

        context_dict = context or {}
        if summary:
            context_dict["Point Forecast"] = summary

        super().__init__(
            message,
            array_name=summary,
            expected_shape=None if expected_length is None else (expected_length,),
            actual_shape=None if actual_length is None else (actual_length,),
            details=details,
            context=context_dict
        )


class NumericError(DistcastError):
    """Exception raised for numerical computation errors.

    Attributes:
        operation: The operation that caused the error
        values: The values that caused the error
        error_type: The type of numerical error (e.g., "overflow")
    """

    def __init__(self,
                 message: str,
                 operation: Optional[str] = None,
                 values: Optional[Any] = None,
                 error_type: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.operation = operation
        self.values = values
        self.error_type = error_type

        context_dict = context or {}
        if operation:
            context_dict["Operation"] = operation
        if values is not None:
            context_dict["Values"] = values
        if error_type:
            context_dict["Error Type"] = error_type

        super().__init__(message, details, context_dict)


class DataError(DistcastError):
    """Exception raised for errors related to input data.

    Attributes:
        data_name: The name of the data that caused the error
        issue: Description of the issue with the data
        index: The index or location where the issue was detected
    """

    def __init__(self,
                 message: str,
                 data_name: Optional[str] = None,
                 issue: Optional[str] = None,
                 index: Optional[Union[int, Tuple[int, ...], str]] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.data_name = data_name
        self.issue = issue
        self.index = index

        context_dict = context or {}
        if data_name:
            context_dict["Data"] = data_name
        if issue:
            context_dict["Issue"] = issue
        if index is not None:
            context_dict["Index"] = index

        super().__init__(message, details, context_dict)


class DistributionError(DistcastError):
    """Exception raised for errors in forecast distributions.

    Attributes:
        dist_type: The type of distribution
        operation: The operation that failed
    """

    def __init__(self,
                 message: str,
                 dist_type: Optional[str] = None,
                 operation: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.dist_type = dist_type
        self.operation = operation

        context_dict = context or {}
        if dist_type:
            context_dict["Distribution"] = dist_type
        if operation:
            context_dict["Operation"] = operation

        super().__init__(message, details, context_dict)


class ForecastError(DistcastError):
    """Exception raised for errors during forecasting.

    Attributes:
        model_type: The type of model being used for forecasting
        horizon: The forecast horizon that was requested
        issue: Description of the issue that occurred during forecasting
        key: Series key of the model table cell that failed, if any
        model: Model column of the model table cell that failed, if any
    """

    def __init__(self,
                 message: str,
                 model_type: Optional[str] = None,
                 horizon: Optional[Union[int, str]] = None,
                 issue: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.model_type = model_type
        self.horizon = horizon
        self.issue = issue

        context_dict = context or {}
        if model_type:
            context_dict["Model Type"] = model_type
        if horizon is not None:
            context_dict["Horizon"] = horizon
        if issue:
            context_dict["Issue"] = issue

        super().__init__(message, details, context_dict)


class SpecialsEvaluationError(ForecastError):
    """Exception raised when a model's regressor terms cannot be evaluated
    against the supplied future data.

    Attributes:
        missing: Names of the variables that could not be found, if known
    """

    def __init__(self,
                 message: str,
                 missing: Optional[List[str]] = None,
                 model_type: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.missing = list(missing) if missing else []

        context_dict = context or {}
        if self.missing:
            context_dict["Missing"] = ", ".join(self.missing)

        super().__init__(message, model_type=model_type, issue="specials",
                         details=details, context=context_dict)


class TransformationError(ForecastError):
    """Exception raised when a response transformation cannot be bound."""

    def __init__(self,
                 message: str,
                 transformation: Optional[str] = None,
                 missing: Optional[List[str]] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.transformation = transformation
        self.missing = list(missing) if missing else []

        context_dict = context or {}
        if transformation:
            context_dict["Transformation"] = transformation
        if self.missing:
            context_dict["Missing"] = ", ".join(self.missing)

        super().__init__(message, issue="transformation", details=details,
                         context=context_dict)


class UnsupportedTransformError(TransformationError):
    """Exception raised for transformations the back-transformation step
    cannot undo, such as several transformed response variables at once."""
    pass


class ConfigurationError(DistcastError):
    """Exception raised for errors in configuration or call settings.

    Attributes:
        config_file: The configuration file path
        setting: The setting that caused the error
        value: The invalid setting value
        issue: Description of the issue with the configuration
    """

    def __init__(self,
                 message: str,
                 config_file: Optional[Union[str, Path]] = None,
                 setting: Optional[str] = None,
                 value: Optional[Any] = None,
                 issue: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.config_file = config_file
        self.setting = setting
        self.value = value
        self.issue = issue

        context_dict = context or {}
        if config_file:
            context_dict["Config File"] = str(config_file)
        if setting:
            context_dict["Setting"] = setting
        if value is not None:
            context_dict["Value"] = value
        if issue:
            context_dict["Issue"] = issue

        super().__init__(message, details, context_dict)


class ForecastCancelled(KeyboardInterrupt):
    """Raised when the user interrupts specials evaluation.

    Not a ``DistcastError``: it aborts the whole forecast call and is never
    attributed to a single model table cell.
    """

    def __init__(self, message: str = "Terminated by user") -> None:
        self.message = message
        super().__init__(message)


class DistcastWarning(Warning):
    """Base warning class for all distcast warnings.

    Attributes:
        message: The warning message
        details: Additional details about the warning
        context: Dictionary containing contextual information about the warning
    """

    def __init__(self,
                 message: str,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details
        self.context = context or {}

        full_message = message
        if details:
            full_message += f"\n\nDetails: {details}"

        if context:
            context_str = "\n".join(f"  {k}: {v}" for k, v in context.items())
            full_message += f"\n\nContext:\n{context_str}"

        super().__init__(full_message)


class ForecastWarning(DistcastWarning):
    """Warning for recoverable conditions while preparing a forecast.

    Attributes:
        setting: The call setting the warning refers to
    """

    def __init__(self,
                 message: str,
                 setting: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.setting = setting

        context_dict = context or {}
        if setting:
            context_dict["Setting"] = setting

        super().__init__(message, details, context_dict)


class DeprecationWarning(DistcastWarning):
    """Warning for deprecated features.

    Attributes:
        feature: The deprecated feature
        alternative: The suggested alternative
        removal_version: The version when the feature will be removed
    """

    def __init__(self,
                 message: str,
                 feature: Optional[str] = None,
                 alternative: Optional[str] = None,
                 removal_version: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.feature = feature
        self.alternative = alternative
        self.removal_version = removal_version

        context_dict = context or {}
        if feature:
            context_dict["Feature"] = feature
        if alternative:
            context_dict["Alternative"] = alternative
        if removal_version:
            context_dict["Removal Version"] = removal_version

        super().__init__(message, details, context_dict)


# Helper functions for raising exceptions with consistent formatting

def raise_numeric_error(message: str,
                       operation: Optional[str] = None,
                       values: Optional[Any] = None,
                       error_type: Optional[str] = None,
                       details: Optional[str] = None,
                       context: Optional[Dict[str, Any]] = None) -> None:
    """Raise a NumericError with consistent formatting.

    Raises:
        NumericError: The formatted numeric error
    """
    raise NumericError(message, operation, values, error_type, details, context)


# Helper functions for issuing warnings with consistent formatting

def warn_forecast(message: str,
                  setting: Optional[str] = None,
                  details: Optional[str] = None,
                  context: Optional[Dict[str, Any]] = None,
                  stacklevel: int = 3) -> None:
    """Issue a ForecastWarning with consistent formatting.

    Args:
        message: The primary warning message
        setting: The call setting the warning refers to
        details: Additional details about the warning
        context: Dictionary containing contextual information about the warning
        stacklevel: Passed through to ``warnings.warn``
    """
    import warnings
    warnings.warn(
        ForecastWarning(message, setting, details, context),
        stacklevel=stacklevel
    )


def warn_deprecation(message: str,
                    feature: Optional[str] = None,
                    alternative: Optional[str] = None,
                    removal_version: Optional[str] = None,
                    details: Optional[str] = None,
                    context: Optional[Dict[str, Any]] = None) -> None:
    """Issue a DeprecationWarning with consistent formatting.

    Args:
        message: The primary warning message
        feature: The deprecated feature
        alternative: The suggested alternative
        removal_version: The version when the feature will be removed
        details: Additional details about the warning
        context: Dictionary containing contextual information about the warning
    """
    import warnings
    warnings.warn(
        DeprecationWarning(message, feature, alternative, removal_version, details, context),
        stacklevel=3
    )
