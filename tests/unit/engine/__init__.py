"""
Unit tests for the engine module.
"""
