"""
Unit tests for the data module.
"""
