"""
Audit journal: append-only record of every order attempt.
"""

from journal.writer import AuditJournal

__all__ = ["AuditJournal"]
