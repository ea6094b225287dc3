"""Explainable voice screening.

Derives jitter, shimmer and harmonicity measures from a sustained-vowel
recording by autocorrelation pitch analysis, and classifies them against a
labelled reference corpus with k-nearest-neighbours.
"""

__version__ = "1.0.0"
