"""Pocketbook — personal finance tracking API.

Users register, authenticate, and keep track of their spending
categories, purchases, and monthly budgets. Every record is owned
by exactly one user and is only ever visible to that user.
"""

__version__ = "0.1.0"
