"""
LeetCode → Markdown Sync

Incrementally mirrors accepted LeetCode submissions into per-problem
Markdown pages and contest index pages.
"""

__version__ = "1.0.0"
