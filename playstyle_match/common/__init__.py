"""Shared data types for the analysis pipeline."""
