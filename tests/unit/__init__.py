"""
Unit tests for the playstyle_match package.
"""
