"""
Compensation grading scenario engine.

Derives salary band matrices from growth rates, manages competing draft
scenarios and governs how a draft becomes a grading system's current structure.
"""

__version__ = "0.1.0"
