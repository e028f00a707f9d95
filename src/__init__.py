"""
Daybook - Source Package

An offline record-keeping core for a small restaurant: one profit and loss
record per trading day, user-defined expense categories, a gas cylinder log
and the reports derived from them.

DESIGN PRINCIPLES:
1. Every stored document carries its schema version
2. Fail early, fail visibly: unreadable data is an error, never "empty"
3. No silent corrections
4. Every change must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Daybook Team"
