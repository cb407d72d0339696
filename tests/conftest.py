import os as _os
import sys

import pytest

# Ensure project root is importable when the package is not installed.
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from srv_announcer.models import SRVRecordSpec  # noqa: E402


class FakeRecordManager:
    """In-memory record set. Queue exceptions in ``failures`` to make calls fail."""

    def __init__(self, records=None):
        self.records = list(records or [])
        self.calls = []
        self.failures = []

    def _maybe_fail(self):
        if self.failures:
            raise self.failures.pop(0)

    def add_record(self, spec):
        self.calls.append("add")
        self._maybe_fail()
        if spec.value not in self.records:
            self.records.append(spec.value)

    def remove_record(self, spec):
        self.calls.append("remove")
        self._maybe_fail()
        if spec.value in self.records:
            self.records.remove(spec.value)


@pytest.fixture
def spec():
    return SRVRecordSpec(target="web-1.example.com.", port=443, priority=10, weight=10, ttl=60)


@pytest.fixture
def manager():
    return FakeRecordManager()
