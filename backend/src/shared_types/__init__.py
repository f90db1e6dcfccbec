"""
Shared type definitions for the booking backend.

This module contains dataclasses and types that are used across multiple services.
"""

from shared_types.availability import Slot, TimeWindow, WindowsByDate

__all__ = ["Slot", "TimeWindow", "WindowsByDate"]
