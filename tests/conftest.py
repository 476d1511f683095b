"""Shared fixtures: a fresh engine per test and the roster actors."""

import pytest

from cts_engine.config import Settings
from cts_engine.models import Priority
from cts_engine.services import build_container


@pytest.fixture
def container():
    """Fresh engine with the default staff roster."""
    return build_container(Settings(notifications_enabled=False))


@pytest.fixture
def client(container):
    return container.directory.register_client("Dana Client", "dana@example.com", "555-0123-456")


@pytest.fixture
def other_client(container):
    return container.directory.register_client("Omar Client", "omar@example.com", "(555) 987-6543")


@pytest.fixture
def compliance(container):
    return container.directory.get("s1")


@pytest.fixture
def marketing_ahm_manager(container):
    return container.directory.get("s2")


@pytest.fixture
def marketing_lko_manager(container):
    return container.directory.get("s3")


@pytest.fixture
def tech_manager(container):
    return container.directory.get("s4")


@pytest.fixture
def raj(container):
    """Technical team lead."""
    return container.directory.get("s5")


@pytest.fixture
def resume_lead(container):
    return container.directory.get("s7")


@pytest.fixture
def make_ticket(container, client):
    """Coroutine factory opening a ticket as the default client."""

    async def _make(actor=None, **overrides):
        fields = {
            "title": "Resume rewrite and LinkedIn push",
            "description": "Need a refreshed resume and a marketing campaign.",
            "priority": Priority.HIGH,
            "contact_email": "dana@example.com",
            "contact_phone": "555-0123-456",
        }
        fields.update(overrides)
        return await container.tickets.create_ticket(actor or client, **fields)

    return _make
