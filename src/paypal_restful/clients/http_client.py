"""HTTP layer for PayPal REST requests.

Each call is a single attempt: no retries happen here. Failures are classified
into the taxonomy in ``paypal_restful.models.errors`` and exposed through
``get_error_info()`` so the caller can decide whether a retry is worthwhile.
"""

import json
import time
from typing import Any, Callable

import httpx
import structlog

from paypal_restful.clients.session_store import SessionStore
from paypal_restful.clients.token_cache import TokenCache
from paypal_restful.models.errors import (
    ERR_CURL_ERROR,
    ERR_NO_CHANNEL,
    AuthExpired,
    ErrorInfo,
    ErrorKind,
    NoChannel,
    ProcessorError,
    ProtocolError,
    TransportError,
    UnexpectedStatus,
)

logger = structlog.get_logger(__name__)

SUCCESS_STATUSES = frozenset({200, 201, 204})

# Statuses PayPal documents for its REST API; their bodies carry name/message/details.
# 400: general, usually interface-related, error
# 403: the client doesn't have access to the endpoint
# 404: resource not found
# 422: unprocessable entity
# 429: rate limited
# 500: server error
# 503: service unavailable
DOCUMENTED_ERROR_STATUSES = frozenset({400, 403, 404, 422, 429, 500, 503})

ALLOWED_METHODS = frozenset({"GET", "POST", "PATCH"})

# Response members that only clutter the logs.
_LOG_OMITTED_KEYS = ("scope", "links", "access_token")


class PayPalHttpClient:
    """
    Issues authenticated requests to the PayPal REST API.

    Bearer tokens come from a ``TokenCache`` bound to the supplied session
    store; a 401 response invalidates the cached token.
    """

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str,
        session_store: SessionStore,
        connect_timeout_seconds: float = 10.0,
        timeout_seconds: float = 45.0,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the PayPal HTTP client.

        Args:
            base_url: PayPal endpoint, e.g. "https://api-m.sandbox.paypal.com/"
            client_id: OAuth2 client id
            client_secret: OAuth2 client secret
            session_store: Session-scoped store for the encrypted token
            connect_timeout_seconds: Connect timeout
            timeout_seconds: Overall request timeout
            transport: Optional httpx transport (used by tests)
            clock: Epoch-seconds clock for token expiry
        """
        self.base_url = base_url.rstrip("/") + "/"
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = httpx.Timeout(timeout_seconds, connect=connect_timeout_seconds)
        self.transport = transport
        self.token_cache = TokenCache(self, session_store, clock=clock)
        self._error_info = ErrorInfo.success()
        self.http_client: httpx.Client | None = None
        self._open_channel()

        logger.info(
            "paypal_http_client_initialized",
            base_url=self.base_url,
            channel_open=self.http_client is not None,
        )

    def _open_channel(self) -> bool:
        try:
            self.http_client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                follow_redirects=False,
                transport=self.transport,
            )
        except (OSError, ValueError, httpx.HTTPError) as e:
            self.http_client = None
            self._error_info = ErrorInfo(
                numeric_code=ERR_NO_CHANNEL,
                message="Unable to initialize the HTTP channel.",
                kind=ErrorKind.NO_CHANNEL,
            )
            logger.warning("paypal_http_channel_unavailable", error=str(e))
            return False
        return True

    def close(self) -> None:
        """Close the underlying connection pool."""
        if self.http_client is not None:
            self.http_client.close()
            self.http_client = None

    def __enter__(self) -> "PayPalHttpClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def get_error_info(self) -> ErrorInfo:
        """Structured error information for the most recent request."""
        return self._error_info

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        auth_required: bool = True,
        request_id: str | None = None,
        form: dict[str, str] | None = None,
        basic_auth: tuple[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any] | None:
        """
        Issue a single request to PayPal.

        Args:
            method: GET, POST or PATCH
            path: Version-prefixed path, e.g. "v2/checkout/orders"
            body: JSON body (dict or, for PATCH, a list of operations)
            auth_required: Attach a bearer token from the token cache
            request_id: PayPal-Request-Id value for idempotent order mutations
            form: Form-encoded body (token request)
            basic_auth: HTTP Basic credentials (token request)
            params: Query-string parameters

        Returns:
            The decoded response ({} for 204/empty bodies), or None on failure
        """
        self._error_info = ErrorInfo.success()
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")

        try:
            return self._issue_request(method, path, body, auth_required, request_id, form, basic_auth, params)
        except ProcessorError as e:
            self._error_info = e.error_info
            return None

    def _issue_request(
        self,
        method: str,
        path: str,
        body: Any,
        auth_required: bool,
        request_id: str | None,
        form: dict[str, str] | None,
        basic_auth: tuple[str, str] | None,
        params: dict[str, str] | None,
    ) -> dict[str, Any]:
        if self.http_client is None and not self._open_channel():
            raise NoChannel(self._error_info)

        headers: dict[str, str] = {}
        if auth_required:
            token = self.token_cache.get_token(self.client_id, self.client_secret)
            if token is None:
                error_info = self.token_cache.get_error_info()
                raise _exception_for(error_info)(error_info)
            headers.update(
                {
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {token}",
                    "Prefer": "return=representation",
                }
            )
        if request_id:
            headers["PayPal-Request-Id"] = request_id

        request_kwargs: dict[str, Any] = {"headers": headers}
        if form is not None:
            request_kwargs["data"] = form
        elif body is not None:
            request_kwargs["content"] = json.dumps(body)
            headers["Content-Type"] = "application/json"
        if basic_auth is not None:
            request_kwargs["auth"] = httpx.BasicAuth(*basic_auth)
        if params:
            request_kwargs["params"] = params

        logger.debug("paypal_request_starting", method=method, path=path, has_body=body is not None)

        client = self.http_client
        try:
            response = client.request(method, path, **request_kwargs)
        except httpx.TransportError as e:
            error_info = ErrorInfo(
                numeric_code=ERR_CURL_ERROR,
                message=str(e) or type(e).__name__,
                transport_error_code=_native_errno(e),
                http_status=200,
                name=type(e).__name__,
                kind=ErrorKind.TRANSPORT_ERROR,
            )
            logger.error(
                "paypal_transport_error",
                method=method,
                path=path,
                error_type=type(e).__name__,
                transport_error_code=error_info.transport_error_code,
            )
            raise TransportError(error_info) from e

        return self._handle_response(method, path, response)

    def _handle_response(self, method: str, path: str, response: httpx.Response) -> dict[str, Any]:
        status = response.status_code
        decoded = _decode_body(response)

        if status in SUCCESS_STATUSES:
            logger.info(
                "paypal_request_succeeded",
                method=method,
                path=path,
                status_code=status,
                response=_loggable(decoded),
            )
            self._error_info = ErrorInfo(http_status=status)
            return decoded if isinstance(decoded, dict) else {}

        if status == 401:
            self.token_cache.invalidate()
            message = "An expired-token error was received."
            error = AuthExpired(ErrorInfo.from_response(status, message, decoded, ErrorKind.AUTH_EXPIRED))
            logger.warning("paypal_token_expired", method=method, path=path)
        elif status in DOCUMENTED_ERROR_STATUSES:
            error = ProtocolError(ErrorInfo.from_response(status, "", decoded, ErrorKind.PROTOCOL_ERROR))
        else:
            message = f"An unexpected response ({status}) was returned from PayPal."
            error = UnexpectedStatus(ErrorInfo.from_response(status, message, decoded, ErrorKind.UNEXPECTED_STATUS))
            logger.warning("paypal_unexpected_status", method=method, path=path, status_code=status)

        logger.info(
            "paypal_request_unsuccessful",
            method=method,
            path=path,
            error_info=error.error_info.to_dict(),
        )
        raise error


_EXCEPTIONS_BY_KIND: dict[ErrorKind, type[ProcessorError]] = {
    ErrorKind.NO_CHANNEL: NoChannel,
    ErrorKind.TRANSPORT_ERROR: TransportError,
    ErrorKind.AUTH_EXPIRED: AuthExpired,
    ErrorKind.PROTOCOL_ERROR: ProtocolError,
    ErrorKind.UNEXPECTED_STATUS: UnexpectedStatus,
}


def _exception_for(error_info: ErrorInfo) -> type[ProcessorError]:
    if error_info.kind is None:
        return ProcessorError
    return _EXCEPTIONS_BY_KIND.get(error_info.kind, ProcessorError)


def _decode_body(response: httpx.Response) -> Any:
    if response.status_code == 204 or not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return {}


def _native_errno(exc: BaseException) -> int:
    """Walk an exception's cause chain for an OS-level errno."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        errno = getattr(current, "errno", None)
        if isinstance(errno, int):
            return errno
        for arg in getattr(current, "args", ()):
            if isinstance(arg, OSError) and isinstance(arg.errno, int):
                return arg.errno
        current = current.__cause__ or current.__context__
    return 0


def _loggable(data: Any) -> Any:
    if isinstance(data, dict):
        return {key: value for key, value in data.items() if key not in _LOG_OMITTED_KEYS}
    return data
