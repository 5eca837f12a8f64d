# =============================================================================
# lib/ - Platform Clients and Standalone Helpers
# =============================================================================
# This package contains the code that talks to external platforms plus
# self-contained helpers:
# - supabase_client.py: Typed Supabase wrapper for database operations
# - paystack_client.py: Paystack payment gateway client
# - onesignal_client.py: OneSignal push notification client
# - recurrence.py: RRULE expansion for recurring tasks
# - utils.py: Shared utilities (error base class, date helpers)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.paystack_client import PaystackClient, PaystackError
from lib.onesignal_client import OneSignalClient, OneSignalError
from lib.utils import ApplicationError

__all__ = [
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
    # Paystack
    "PaystackClient",
    "PaystackError",
    # OneSignal
    "OneSignalClient",
    "OneSignalError",
    # Utils
    "ApplicationError",
]
