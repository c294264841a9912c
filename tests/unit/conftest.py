"""Shared fixtures for unit tests."""

import pytest
from fakes import BASE_URL, CLIENT_ID, CLIENT_SECRET, FakeClock, FakePayPal

from paypal_restful.clients.http_client import PayPalHttpClient
from paypal_restful.clients.paypal_api import PayPalRestfulApi
from paypal_restful.clients.session_store import InMemorySessionStore
from paypal_restful.ledger import InMemoryTransactionStore, TransactionLedger


@pytest.fixture
def fake_paypal():
    return FakePayPal()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def http_client(fake_paypal, session_store, clock):
    client = PayPalHttpClient(
        base_url=BASE_URL,
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        session_store=session_store,
        transport=fake_paypal.transport(),
        clock=clock,
    )
    yield client
    client.close()


@pytest.fixture
def api(http_client):
    return PayPalRestfulApi(http_client)


@pytest.fixture
def store():
    return InMemoryTransactionStore()


@pytest.fixture
def ledger(api, store):
    return TransactionLedger(api, store, module_version="1.0.0")
