"""
End-to-end tests of the analysis pipeline and CLI.
"""
