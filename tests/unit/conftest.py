"""Unit test fixtures: in-memory stores, a fixed clock, and a wired engine."""

from __future__ import annotations

import pytest

from homework_engine.core.config import AppSettings
from homework_engine.homework.engine import HomeworkEngine
from tests.fakes import FakeClock, MemoryBlobStore, MemoryHomeworkStore
from tests.fakes.factories import make_session


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    s = MemoryHomeworkStore()
    s.add_session(make_session("s-1"))
    return s


@pytest.fixture
def blobs():
    return MemoryBlobStore()


@pytest.fixture
def settings():
    return AppSettings()


@pytest.fixture
def engine(settings, store, blobs, clock):
    return HomeworkEngine(settings=settings, store=store, blob_store=blobs, clock=clock)
