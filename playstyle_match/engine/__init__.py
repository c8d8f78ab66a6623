"""
Engine package.

Modules:
    oracle: EvaluationOracle protocol and the Stockfish-backed implementation
    material: Material balance and synthetic evaluations for the fallback path
"""
