"""Pytest configuration for sharegate tests."""
import sys
from pathlib import Path

# Add src/ to path for src-layout imports
_SRC = Path(__file__).parent.parent / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

from datetime import timedelta

import pytest
from passlib.context import CryptContext

from sharegate.app.inmemory import (
    InMemoryAuditLogStore,
    InMemoryObjectStorage,
    InMemoryShareRecordStore,
)
from sharegate.app.sharing.model import ShareRecord, generate_share_token, utcnow


@pytest.fixture
def share_store():
    return InMemoryShareRecordStore()


@pytest.fixture
def audit_store():
    return InMemoryAuditLogStore()


@pytest.fixture
def object_storage():
    return InMemoryObjectStorage()


@pytest.fixture
def fast_pwd_context():
    """Minimum-cost bcrypt so hashing does not dominate test time."""
    return CryptContext(schemes=['bcrypt'], bcrypt__rounds=4)


@pytest.fixture
def make_share(share_store, object_storage):
    """Create and store a share whose object exists in storage."""

    async def _make(**overrides) -> ShareRecord:
        token = overrides.pop('token', generate_share_token())
        fields = dict(
            id='',
            owner_id='owner-1',
            original_name='report.pdf',
            stored_path=f'owner-1/{token}-report.pdf',
            token=token,
            expires_at=utcnow() + timedelta(days=1),
        )
        fields.update(overrides)
        record = await share_store.create(ShareRecord(**fields))
        await object_storage.put(record.stored_path, b'file-bytes')
        return record

    return _make
