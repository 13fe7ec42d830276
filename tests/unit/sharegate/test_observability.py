"""Tests for log formatting and request-ID propagation."""

from __future__ import annotations

import json
import logging

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from sharegate.observability.logging import build_formatter, request_id_ctx
from sharegate.observability.middleware import RequestIdMiddleware


def _record(msg: str = 'Signed URL generation failed for share %s', *args) -> logging.LogRecord:
    return logging.LogRecord(
        'sharegate.app.sharing.gate', logging.WARNING, __file__, 1,
        msg, args or ('share-1',), None,
    )


def test_json_line_carries_request_id_and_environment():
    formatter = build_formatter(json_output=True, environment='staging')
    token = request_id_ctx.set('req-1234abcd')
    try:
        line = json.loads(formatter.format(_record()))
    finally:
        request_id_ctx.reset(token)

    assert line['event'] == 'Signed URL generation failed for share share-1'
    assert line['level'] == 'warning'
    assert line['logger'] == 'sharegate.app.sharing.gate'
    assert line['environment'] == 'staging'
    assert line['request_id'] == 'req-1234abcd'
    assert 'timestamp' in line


def test_no_request_id_outside_requests():
    line = json.loads(build_formatter().format(_record()))

    assert 'request_id' not in line
    assert line['environment'] == 'local'


def test_console_output():
    rendered = build_formatter(json_output=False).format(_record())

    assert 'Signed URL generation failed for share share-1' in rendered


@pytest.fixture
def client():
    app = FastAPI()
    app.add_middleware(RequestIdMiddleware)

    @app.get('/echo')
    async def echo():
        return {'request_id': request_id_ctx.get()}

    return TestClient(app)


def test_request_id_from_header(client):
    resp = client.get('/echo', headers={'X-Request-ID': 'abc-12345678'})

    assert resp.json()['request_id'] == 'abc-12345678'
    assert resp.headers['X-Request-ID'] == 'abc-12345678'


@pytest.mark.parametrize('incoming', [None, 'short', 'bad id with spaces!'])
def test_request_id_generated_when_missing_or_malformed(client, incoming):
    headers = {'X-Request-ID': incoming} if incoming else {}
    resp = client.get('/echo', headers=headers)

    rid = resp.json()['request_id']
    assert rid and rid != incoming
    assert resp.headers['X-Request-ID'] == rid
