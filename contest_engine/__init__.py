"""
contest_engine
Competition lifecycle, registration admission, team formation,
submission intake and multi-judge scoring for hosted coding competitions.
"""

__version__ = "1.0.0"
