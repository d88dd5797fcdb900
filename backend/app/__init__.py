"""
Vet clinic operations backend.

Clinic-local time windows, reminder eligibility and the resilient client used
by the dashboard.
"""
