"""State/store layer.

This package is the single source of truth for the synchronized
collections: every fetch result, whatever triggered it, is applied here
as a wholesale per-kind replacement.
"""
