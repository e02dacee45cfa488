"""
Adapters layer - External integrations (Supabase, booking API, local store).
"""

from .booking_api_client import BookingApiClient
from .mock_data_source import MockDataSource
from .sqlite_booking_store import SqliteBookingStore
from .supabase_client import SupabaseClient

__all__ = ["BookingApiClient", "MockDataSource", "SqliteBookingStore", "SupabaseClient"]
