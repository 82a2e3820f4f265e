import copy
from datetime import datetime

import pytest

from personal_budget.backend.errors import StorageUnavailable
from personal_budget.backend.manager import BudgetManager


class FakeStorage:
    """In-memory gateway that records saves and can be told to fail."""

    def __init__(self, documents=None, fail_load=False, fail_saves=0):
        self.documents = documents or {}
        self.fail_load = fail_load
        self.fail_saves = fail_saves
        self.saves = []

    def load(self, collection, doc_id):
        if self.fail_load:
            raise StorageUnavailable("connection refused")
        doc = self.documents.get((collection, doc_id))
        return copy.deepcopy(doc) if doc is not None else None

    def save(self, collection, doc_id, doc):
        if self.fail_saves:
            self.fail_saves -= 1
            raise StorageUnavailable("write timed out")
        self.saves.append(copy.deepcopy(doc))
        self.documents[(collection, doc_id)] = copy.deepcopy(doc)


def fixed_clock():
    return datetime(2025, 9, 15, 12, 0, 0)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def make_manager():
    managers = []

    def _make(storage, **kwargs):
        kwargs.setdefault('clock', fixed_clock)
        kwargs.setdefault('default_budget', 2000)
        kwargs.setdefault('retry_delay', 0)
        manager = BudgetManager(storage, **kwargs)
        managers.append(manager)
        return manager

    yield _make
    for manager in managers:
        manager.close()


@pytest.fixture
def manager(storage, make_manager):
    m = make_manager(storage)
    m.initialize()
    m.flush(timeout=5)
    return m
