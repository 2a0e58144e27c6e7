"""
Scout - Opportunity Signal Digest

This package scans forums, curated social feeds and App Store rankings
for product opportunities, scores and deduplicates them across runs,
and emails an AI-annotated digest.
"""

__version__ = "1.0.0"
