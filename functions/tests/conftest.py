import pytest

from firestore_fakes import FakeBucket, FakeFirestore
from push_fakes import RecordingSender


@pytest.fixture
def db() -> FakeFirestore:
    return FakeFirestore()


@pytest.fixture
def bucket() -> FakeBucket:
    return FakeBucket()


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()
