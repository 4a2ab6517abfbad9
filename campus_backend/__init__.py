"""
Campus Desk Service
===================

A small backend for a university campus:
1. Lost-and-found board (report, claim, verify, close items)
2. Facility issue tracker (report, upvote, assign, resolve issues)

Accounts are students or admins; authentication is a bearer JWT.
"""

__version__ = "1.0.0"
