"""
FlowBook - Source Package

A personal expense tracker: record expenses with a title, amount,
category and optional notes, then review daily and per-category
summaries of where the money went.

DESIGN PRINCIPLES:
1. Validate before anything touches storage
2. Derived summaries are pure functions of the stored expenses
3. Queries are live: every completed write refreshes their subscribers
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "FlowBook Team"
