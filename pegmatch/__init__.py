"""Parsing expression grammar patterns compiled to a backtracking matching machine."""

__version__ = "1.0.1"

__all__ = [
    "analysis",
    "captures",
    "charset",
    "compiler",
    "grammar",
    "pattern",
    "printing",
    "tree",
    "vm",
]