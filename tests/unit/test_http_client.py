"""Unit tests for the PayPal HTTP layer."""

import httpx
import pytest

from paypal_restful.clients.token_cache import SAVED_TOKEN_KEY
from paypal_restful.models.errors import ERR_CURL_ERROR, ERR_NO_ERROR, ErrorKind

ORDER_PATH = "v2/checkout/orders/5O190127TN364715T"


class TestSuccessfulRequests:
    """Tests for requests PayPal accepts."""

    def test_authenticated_request_headers(self, http_client, fake_paypal):
        fake_paypal.add("GET", ORDER_PATH, 200, {"id": "5O190127TN364715T", "status": "CREATED"})

        http_client.request("GET", ORDER_PATH)

        request = fake_paypal.requests_to("GET", ORDER_PATH)[0]
        assert request.headers["Authorization"] == "Bearer A21AA-token-1"
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["Prefer"] == "return=representation"
        assert "PayPal-Request-Id" not in request.headers

    def test_request_id_header(self, http_client, fake_paypal):
        fake_paypal.add("POST", "v2/checkout/orders", 201, {"id": "5O190127TN364715T"})

        http_client.request("POST", "v2/checkout/orders", {"intent": "CAPTURE"}, request_id="guid-1")

        request = fake_paypal.requests_to("POST", "v2/checkout/orders")[0]
        assert request.headers["PayPal-Request-Id"] == "guid-1"
        assert fake_paypal.body_of(request) == {"intent": "CAPTURE"}

    def test_success_resets_error_info(self, http_client, fake_paypal):
        fake_paypal.add("GET", ORDER_PATH, 200, {"id": "5O190127TN364715T"})

        result = http_client.request("GET", ORDER_PATH)

        assert result == {"id": "5O190127TN364715T"}
        error_info = http_client.get_error_info()
        assert error_info.numeric_code == ERR_NO_ERROR
        assert error_info.http_status == 200
        assert error_info.is_error is False

    def test_created_status(self, http_client, fake_paypal):
        fake_paypal.add("POST", "v2/checkout/orders", 201, {"id": "5O190127TN364715T"})

        assert http_client.request("POST", "v2/checkout/orders", {}) == {"id": "5O190127TN364715T"}
        assert http_client.get_error_info().http_status == 201

    def test_no_content_decodes_to_empty_dict(self, http_client, fake_paypal):
        fake_paypal.add("PATCH", ORDER_PATH, 204)

        result = http_client.request("PATCH", ORDER_PATH, [{"op": "replace", "path": "/x", "value": 1}])

        assert result == {}
        assert http_client.get_error_info().http_status == 204

    def test_unsupported_method(self, http_client):
        with pytest.raises(ValueError, match="Unsupported HTTP method"):
            http_client.request("DELETE", ORDER_PATH)


class TestExpiredToken:
    """Tests for 401 handling."""

    def test_401_invalidates_token_and_next_call_refetches(self, http_client, fake_paypal, session_store):
        fake_paypal.add("GET", ORDER_PATH, 401, {"error": "invalid_token"})
        fake_paypal.add("GET", ORDER_PATH, 200, {"id": "5O190127TN364715T"})

        assert http_client.request("GET", ORDER_PATH) is None

        error_info = http_client.get_error_info()
        assert error_info.numeric_code == 401
        assert error_info.kind == ErrorKind.AUTH_EXPIRED
        assert error_info.message == "An expired-token error was received."
        assert error_info.is_retryable is True
        assert SAVED_TOKEN_KEY not in session_store

        assert http_client.request("GET", ORDER_PATH) == {"id": "5O190127TN364715T"}
        assert fake_paypal.tokens_issued == 2
        assert fake_paypal.requests_to("GET", ORDER_PATH)[-1].headers["Authorization"] == "Bearer A21AA-token-2"


class TestErrorResponses:
    """Tests for documented and undocumented error statuses."""

    def test_documented_error_carries_paypal_details(self, http_client, fake_paypal):
        fake_paypal.add(
            "POST",
            "v2/payments/authorizations/0VF52814937998046/reauthorize",
            422,
            {
                "name": "UNPROCESSABLE_ENTITY",
                "message": "The requested action could not be performed.",
                "details": [
                    {"issue": "REAUTHORIZATION_TOO_SOON", "description": "Too soon to reauthorize."},
                ],
            },
        )

        result = http_client.request("POST", "v2/payments/authorizations/0VF52814937998046/reauthorize", {})

        assert result is None
        error_info = http_client.get_error_info()
        assert error_info.numeric_code == 422
        assert error_info.http_status == 422
        assert error_info.kind == ErrorKind.PROTOCOL_ERROR
        assert error_info.name == "UNPROCESSABLE_ENTITY"
        assert error_info.detail_message == "The requested action could not be performed."
        assert error_info.first_issue == "REAUTHORIZATION_TOO_SOON"
        assert error_info.is_retryable is False

    @pytest.mark.parametrize("status_code", [429, 500, 503])
    def test_retryable_statuses(self, http_client, fake_paypal, status_code):
        fake_paypal.add("GET", ORDER_PATH, status_code, {"name": "SERVICE_UNAVAILABLE"})

        assert http_client.request("GET", ORDER_PATH) is None
        assert http_client.get_error_info().is_retryable is True

    def test_unexpected_status(self, http_client, fake_paypal):
        fake_paypal.add("GET", ORDER_PATH, 418)

        assert http_client.request("GET", ORDER_PATH) is None

        error_info = http_client.get_error_info()
        assert error_info.numeric_code == 418
        assert error_info.kind == ErrorKind.UNEXPECTED_STATUS
        assert error_info.message == "An unexpected response (418) was returned from PayPal."
        assert error_info.name == "n/a"
        assert error_info.is_retryable is False

    def test_token_failure_is_reported_for_the_request(self, http_client, fake_paypal):
        fake_paypal.add("POST", "v1/oauth2/token", 503, {"name": "SERVICE_UNAVAILABLE"})

        assert http_client.request("GET", ORDER_PATH) is None
        assert http_client.get_error_info().numeric_code == 503
        assert fake_paypal.requests_to("GET", ORDER_PATH) == []


class TestTransportErrors:
    def test_transport_error(self, http_client, fake_paypal):
        error = httpx.ConnectError("Connection refused")
        error.__cause__ = ConnectionRefusedError(111, "Connection refused")
        fake_paypal.fail("GET", ORDER_PATH, error)

        assert http_client.request("GET", ORDER_PATH) is None

        error_info = http_client.get_error_info()
        assert error_info.numeric_code == ERR_CURL_ERROR
        assert error_info.transport_error_code == 111
        assert error_info.http_status == 200
        assert error_info.kind == ErrorKind.TRANSPORT_ERROR
        assert error_info.is_retryable is True

    def test_timeout(self, http_client, fake_paypal):
        fake_paypal.fail("GET", ORDER_PATH, httpx.ReadTimeout("timed out"))

        assert http_client.request("GET", ORDER_PATH) is None
        assert http_client.get_error_info().numeric_code == ERR_CURL_ERROR
        assert http_client.get_error_info().transport_error_code == 0
