"""Database connection, models and stores."""

from src.fittalk.services.database.connection import get_supabase_admin_client
from src.fittalk.services.database.exceptions import (
    DatabaseError,
    DuplicateRecordError,
    RecordNotFound,
    StorageUnavailable,
    UserNotFound,
)
from src.fittalk.services.database.stores import (
    DeviceStore,
    PreferencesStore,
    ProfileStore,
    SessionStore,
    UserStore,
)
from src.fittalk.services.database.utils import SupabaseQueryBuilder, get_query_builder

__all__ = [
    "get_supabase_admin_client",
    "SupabaseQueryBuilder",
    "get_query_builder",
    "DatabaseError",
    "DuplicateRecordError",
    "RecordNotFound",
    "StorageUnavailable",
    "UserNotFound",
    "UserStore",
    "SessionStore",
    "ProfileStore",
    "PreferencesStore",
    "DeviceStore",
]
