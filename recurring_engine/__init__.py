"""
Recurring Engine - Source Package

Scheduling engine for recurring transactions (subscriptions, bills,
paychecks) of a personal finance tracker.

DESIGN PRINCIPLES:
1. Pure date math, clock passed in, never read from the system
2. Reject bad input before anything is stored
3. No silent due-date shifts
4. Every transition leaves an audit event
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Wallet Recurring Team"
