"""Tests for share lifecycle status evaluation and record mapping."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from sharegate.app.sharing.model import (
    HashScheme,
    ShareRecord,
    ShareStatus,
    evaluate_share_status,
    parse_timestamp,
    resolve_hash_scheme,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _record(**overrides) -> ShareRecord:
    fields = dict(
        id='s1',
        owner_id='u1',
        original_name='a.txt',
        stored_path='u1/a.txt',
        token='tok',
    )
    fields.update(overrides)
    return ShareRecord(**fields)


class TestEvaluateShareStatus:
    def test_unbounded_share_is_active(self):
        assert evaluate_share_status(_record(), NOW) is ShareStatus.ACTIVE

    def test_future_expiry_is_active(self):
        record = _record(expires_at=NOW + timedelta(seconds=1))
        assert evaluate_share_status(record, NOW) is ShareStatus.ACTIVE

    def test_expiry_equal_to_now_is_expired(self):
        assert evaluate_share_status(_record(expires_at=NOW), NOW) is ShareStatus.EXPIRED

    def test_download_limit_reached_is_expired(self):
        record = _record(max_downloads=2, download_count=2)
        assert evaluate_share_status(record, NOW) is ShareStatus.EXPIRED

    def test_below_download_limit_is_active(self):
        record = _record(max_downloads=2, download_count=1)
        assert evaluate_share_status(record, NOW) is ShareStatus.ACTIVE

    def test_revoked_wins_over_expiry_and_limit(self):
        record = _record(
            revoked=True,
            expires_at=NOW - timedelta(days=1),
            max_downloads=1,
            download_count=1,
        )
        assert evaluate_share_status(record, NOW) is ShareStatus.REVOKED

    def test_evaluation_is_pure(self):
        record = _record(max_downloads=3, download_count=1, expires_at=NOW + timedelta(hours=1))
        before = (record.download_count, record.expires_at, record.revoked)
        results = {evaluate_share_status(record, NOW) for _ in range(5)}
        assert results == {ShareStatus.ACTIVE}
        assert (record.download_count, record.expires_at, record.revoked) == before


class TestRowMapping:
    def test_from_row_maps_columns(self):
        record = ShareRecord.from_row({
            'id': 'abc',
            'user_id': 'u9',
            'original_name': 'x.bin',
            'stored_path': 'u9/x.bin',
            'token': 't',
            'expires_at': '2026-03-01T12:00:00Z',
            'max_downloads': 3,
            'download_count': 1,
            'password_hash': 'deadbeef',
            'hash_version': None,
            'encryption_enabled': True,
            'encryption_iv': 'AAAAAAAAAAAAAAAA',
            'is_revoked': False,
            'created_at': '2026-02-01T00:00:00+00:00',
        })
        assert record.owner_id == 'u9'
        assert record.expires_at == NOW
        assert record.hash_scheme is HashScheme.LEGACY_DIGEST
        assert record.encryption_enabled is True

    def test_to_row_omits_id_and_persists_scheme(self):
        record = _record(password_hash='$2b$...', hash_scheme=HashScheme.BCRYPT)
        row = record.to_row()
        assert 'id' not in row
        assert row['hash_version'] == 'bcrypt'
        assert row['user_id'] == 'u1'

    def test_public_dict_hides_password_hash(self):
        public = _record(password_hash='secret-hash').to_public_dict()
        assert 'password_hash' not in public
        assert public['password_protected'] is True


class TestResolveHashScheme:
    @pytest.mark.parametrize('version', [None, '', 'sha256', 'legacy-digest'])
    def test_legacy_versions(self, version):
        assert resolve_hash_scheme('abc', version) is HashScheme.LEGACY_DIGEST

    def test_bcrypt(self):
        assert resolve_hash_scheme('$2b$10$x', 'bcrypt') is HashScheme.BCRYPT

    def test_no_hash_means_none(self):
        assert resolve_hash_scheme(None, 'bcrypt') is HashScheme.NONE

    def test_unknown_version_rejected(self):
        with pytest.raises(ValueError):
            resolve_hash_scheme('abc', 'argon2')


def test_parse_timestamp_assumes_utc_for_naive_values():
    assert parse_timestamp('2026-03-01T12:00:00') == NOW
    assert parse_timestamp(None) is None
