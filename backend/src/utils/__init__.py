"""
Utility modules for the booking backend.

This package contains shared helpers used across the application, including
datetime conversion and interval-set arithmetic.
"""
