"""OAuth2 access-token cache for PayPal REST requests."""

import time
from typing import TYPE_CHECKING, Callable

import structlog

from paypal_restful.clients.session_store import SessionStore
from paypal_restful.domain.encryption import DecryptionError, encrypt_token, decrypt_token
from paypal_restful.models.errors import ErrorInfo, ErrorKind

if TYPE_CHECKING:
    from paypal_restful.clients.http_client import PayPalHttpClient

logger = structlog.get_logger(__name__)

TOKEN_PATH = "v1/oauth2/token"

SAVED_TOKEN_KEY = "PayPalRestful.saved_token"
TOKEN_EXPIRES_KEY = "PayPalRestful.token_expires_ts"


class TokenCache:
    """
    Acquires PayPal bearer tokens and caches them, encrypted, in the session.

    Only the ciphertext and an absolute expiry timestamp live in the session
    store; nothing is kept on the instance between calls.
    """

    def __init__(
        self,
        http_client: "PayPalHttpClient",
        session_store: SessionStore,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the token cache.

        Args:
            http_client: Client used for the (unauthenticated) token request
            session_store: Session-scoped store holding the encrypted token
            clock: Returns the current epoch time in seconds
        """
        self.http_client = http_client
        self.session_store = session_store
        self.clock = clock
        self._error_info = ErrorInfo.success()

    def get_error_info(self) -> ErrorInfo:
        """Error information for the most recent ``get_token`` call."""
        return self._error_info

    def get_token(self, client_id: str, client_secret: str, use_cache: bool = True) -> str | None:
        """
        Return a bearer token, from the session cache when possible.

        Args:
            client_id: PayPal OAuth2 client id
            client_secret: PayPal OAuth2 client secret, also the cache's encryption key
            use_cache: False bypasses the cache entirely (neither read nor written);
                used to validate credentials

        Returns:
            The access token, or None on failure (see ``get_error_info``)
        """
        self._error_info = ErrorInfo.success()

        if use_cache:
            token = self._get_saved_token(client_secret)
            if token is not None:
                return token

        response = self.http_client.request(
            "POST",
            TOKEN_PATH,
            form={"grant_type": "client_credentials"},
            basic_auth=(client_id, client_secret),
            auth_required=False,
        )
        if response is None:
            self._error_info = self.http_client.get_error_info()
            logger.warning(
                "oauth_token_request_failed",
                numeric_code=self._error_info.numeric_code,
                name=self._error_info.name,
            )
            return None

        access_token = response.get("access_token")
        if not access_token:
            self._error_info = ErrorInfo(
                numeric_code=self.http_client.get_error_info().http_status,
                message="The token response did not include an access_token.",
                http_status=self.http_client.get_error_info().http_status,
                kind=ErrorKind.PROTOCOL_ERROR,
            )
            logger.error("oauth_token_missing_in_response")
            return None

        if use_cache:
            self._save_token(access_token, client_secret, int(response.get("expires_in", 0)))

        logger.info("oauth_token_acquired", cached=use_cache, expires_in=response.get("expires_in"))
        return access_token

    def validate_credentials(self, client_id: str, client_secret: str) -> bool:
        """Check a client id/secret pair against PayPal without touching the cache."""
        return self.get_token(client_id, client_secret, use_cache=False) is not None

    def invalidate(self) -> None:
        """Unconditionally discard the cached token and its expiry."""
        self.session_store.delete(SAVED_TOKEN_KEY)
        self.session_store.delete(TOKEN_EXPIRES_KEY)

    def _get_saved_token(self, client_secret: str) -> str | None:
        saved_token = self.session_store.get(SAVED_TOKEN_KEY)
        expires_ts = self.session_store.get(TOKEN_EXPIRES_KEY)
        if saved_token is None or expires_ts is None:
            self.invalidate()
            return None

        try:
            expired = self.clock() > float(expires_ts)
        except (TypeError, ValueError):
            logger.warning("saved_token_expiry_unreadable")
            expired = True
        if expired:
            self.invalidate()
            return None

        try:
            token = decrypt_token(saved_token, client_secret)
        except DecryptionError:
            logger.warning("saved_token_decryption_failed")
            self.invalidate()
            return None

        logger.debug("saved_token_used")
        return token

    def _save_token(self, access_token: str, client_secret: str, seconds_to_expiration: int) -> None:
        self.session_store.set(SAVED_TOKEN_KEY, encrypt_token(access_token, client_secret))
        self.session_store.set(TOKEN_EXPIRES_KEY, self.clock() + seconds_to_expiration)
