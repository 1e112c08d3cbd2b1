from __future__ import annotations

import pytest
from fastapi import HTTPException

from mailevents.helpers import is_web_url, ms_to_iso, to_iso
from mailevents.mailgun import (
    client_user_agent, event_data, event_timestamp, parse_body, parse_event
)

RECEIVED_AT = 1600000000.0


def test_ms_to_iso_matches_javascript_format():
    assert ms_to_iso(1700000000 * 1000) == "2023-11-14T22:13:20.000Z"
    assert ms_to_iso(0) == "1970-01-01T00:00:00.000Z"
    assert to_iso(1700000000.5) == "2023-11-14T22:13:20.500Z"


@pytest.mark.parametrize("raw, expected", [
    (1700000000, "2023-11-14T22:13:20.000Z"),
    (1700000000.25, "2023-11-14T22:13:20.250Z"),
    ("1700000000", "2023-11-14T22:13:20.000Z"),
])
def test_event_timestamp_reads_epoch_seconds(raw, expected):
    assert event_timestamp(raw, RECEIVED_AT) == expected


@pytest.mark.parametrize(
    "raw",
    [None, "", "soon", True, float("nan"), float("inf"), 1e20, 10**400, {}],
)
def test_event_timestamp_falls_back_to_receipt_time(raw, caplog):
    assert event_timestamp(raw, RECEIVED_AT) == to_iso(RECEIVED_AT)
    assert "Unusable event timestamp" in caplog.text


def test_client_user_agent_joins_parts():
    info = {
        "client_name": "Thunderbird",
        "client_type": "mobile",
        "user_agent": "Mozilla/5.0",
    }
    assert client_user_agent(info) == "Thunderbird mobile Mozilla/5.0"
    assert client_user_agent({"user_agent": "curl/8"}) == "curl/8"
    assert client_user_agent({"client_type": "browser"}) == "browser"


@pytest.mark.parametrize("info", [None, {}, "Chrome", {"client_name": ""}])
def test_client_user_agent_is_none_when_empty(info):
    assert client_user_agent(info) is None


def test_event_data_requires_an_object():
    assert event_data({"event-data": {"event": "opened"}}) == {
        "event": "opened"
    }
    assert event_data({"event-data": None}) is None
    assert event_data({"event-data": []}) is None
    assert event_data({"event-data": 3}) is None
    assert event_data({"signature": {}}) is None
    assert event_data("event-data") is None


def test_parse_body_rejects_invalid_json():
    assert parse_body(b'{"a": 1}') == {"a": 1}
    with pytest.raises(HTTPException) as e:
        parse_body(b"\xff\xfe")
    assert e.value.status_code == 400


@pytest.mark.parametrize("body", [
    b'{"event-data": {"timestamp": ' + b"9" * 5001 + b"}}",
    b"[" * 100000 + b"]" * 100000,
])
def test_parse_body_rejects_unparseable_json(body):
    with pytest.raises(HTTPException) as e:
        parse_body(body)
    assert e.value.status_code == 400
    assert e.value.detail == "Invalid JSON"


def test_parse_event_extracts_fields():
    ev = parse_event({
        "event": "clicked",
        "recipient": "Someone@Example.com",
        "domain": "",
        "ip": "198.51.100.1",
        "url": "https://x.com/a?b=c",
        "timestamp": 1700000000,
        "message": {"headers": {"subject": "Weekly  digest"}},
    }, RECEIVED_AT)
    assert ev.kind == "clicked"
    assert ev.email == "Someone@Example.com"
    assert ev.domain is None
    assert ev.subject == "Weekly  digest"
    assert ev.ip == "198.51.100.1"
    assert ev.url == "https://x.com/a?b=c"
    assert ev.user_agent is None
    assert ev.timestamp == "2023-11-14T22:13:20.000Z"


def test_parse_event_tolerates_odd_shapes():
    ev = parse_event({
        "event": "opened",
        "message": "not an object",
        "client-info": ["x"],
    }, RECEIVED_AT)
    assert ev.subject is None
    assert ev.user_agent is None
    assert ev.email is None
    assert ev.timestamp == to_iso(RECEIVED_AT)


@pytest.mark.parametrize("url, ok", [
    ("https://x.com", True),
    ("HTTP://x.com", True),
    (" https://x.com", True),
    ("javascript:alert(1)", False),
    ("data:text/html,hi", False),
    ("/relative", False),
    ("http://[::1", False),
])
def test_is_web_url(url, ok):
    assert is_web_url(url) is ok
