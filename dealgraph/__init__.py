"""
Deal Graph Intelligence

Relationship graph, influence scoring and deal health analysis for sales teams.
"""

__version__ = "0.1.0"
