"""
Slotkeeper - availability and slot allocation engine for consultation bookings.
"""

__version__ = "0.1.0"
