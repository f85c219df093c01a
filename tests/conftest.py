"""Shared fixtures for content store tests."""

from unittest.mock import MagicMock

import pytest

from contentstore.core.address import ResourceAddress
from contentstore.core.notify import NotificationSink, ObserverBus
from contentstore.core.provider import DataProvider

AUTHORITY = "test.authority"


def uri(path: str = "", **options) -> ResourceAddress:
    """Address under the test authority; an empty path is the whole-store address."""
    segments = path.split("/") if path else []
    return ResourceAddress.build(AUTHORITY, *segments, **options)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "contentstore.db")


@pytest.fixture
def sink():
    return MagicMock(spec=NotificationSink)


@pytest.fixture
def provider(db_path, sink):
    """Provider with a mocked notification sink."""
    provider = DataProvider(sink=sink, db_path=db_path, authority=AUTHORITY)
    yield provider
    provider.shutdown()


@pytest.fixture
def bus():
    return ObserverBus()


@pytest.fixture
def live_provider(db_path, bus):
    """Provider wired to a real in-process observer bus."""
    provider = DataProvider(sink=bus, db_path=db_path, authority=AUTHORITY)
    yield provider
    provider.shutdown()


def notified(sink) -> list:
    """Addresses passed to ``sink.notify_change`` so far."""
    return [call.args[0] for call in sink.notify_change.call_args_list]
