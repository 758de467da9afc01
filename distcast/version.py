# distcast/version.py
"""
distcast Version Information

This module contains version information and package metadata. It is the
single source of the version, read by ``distcast.__version__``, the
packaging metadata and the documentation build.

distcast follows semantic versioning (MAJOR.MINOR.PATCH):
- MAJOR: Incompatible API changes
- MINOR: Backwards-compatible functionality additions
- PATCH: Backwards-compatible bug fixes
"""

# Version components
VERSION_MAJOR = 0
VERSION_MINOR = 1
VERSION_PATCH = 0

# Full version string
__version__ = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_PATCH}"

# Package metadata
__title__ = "distcast"
__description__ = "Probabilistic forecasts from fitted time series models"
__license__ = "MIT"

# Python version requirements
__python_requires__ = ">=3.10"

# Minimum versions of the runtime dependencies, checked on import
__dependencies__ = {
    "numpy": ">=1.26.0",
    "scipy": ">=1.11.3",
    "pandas": ">=2.1.1",
    "numba": ">=0.58.0",
    "statsmodels": ">=0.14.0",
}
