"""
Unit tests for the shared data types.
"""
