"""
distcast Test Suite

Tests for the forecast distribution representations, response
transformations, horizon resolution, the single-model forecast pipeline,
model table dispatch, the reference ARX model and configuration handling.
"""
