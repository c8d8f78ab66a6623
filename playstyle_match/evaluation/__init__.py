"""
Evaluation package.

Modules:
    game_analyzer: Move-by-move game walker producing an AnalysisResult
    playstyle_metrics: Style profiler producing a StyleVector
    opening_classifier: Opening family labels and ECO lookup
    matcher: Reference player matching
"""
