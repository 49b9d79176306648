"""
Test Suite Initialization

polyrag test suite. Shared fakes and fixtures live in conftest.py.
"""
