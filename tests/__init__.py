"""
Test suite for playstyle-match.
"""
