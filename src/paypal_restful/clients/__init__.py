"""Clients for the PayPal REST API.

- session_store.SessionStore: get/set/delete interface to the host's session
- token_cache.TokenCache: encrypted, session-scoped OAuth2 token cache
- http_client.PayPalHttpClient: single-attempt requests with error classification
- paypal_api.PayPalRestfulApi: one method per PayPal operation
"""

from paypal_restful.clients.http_client import PayPalHttpClient
from paypal_restful.clients.paypal_api import PayPalRestfulApi
from paypal_restful.clients.session_store import InMemorySessionStore, SessionStore
from paypal_restful.clients.token_cache import TokenCache

__all__ = [
    "InMemorySessionStore",
    "PayPalHttpClient",
    "PayPalRestfulApi",
    "SessionStore",
    "TokenCache",
]
