"""Reminder windowing, eligibility rules and the daily dispatch scan.

The scan runs as a Celery beat task; eligibility and filters are pure and
are also used directly by the dashboard endpoints.
"""
