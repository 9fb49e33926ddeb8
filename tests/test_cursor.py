"""
Tests for opaque paging cursors.
"""

from __future__ import annotations

import base64

import pytest

from engine.cursor import Cursor, decode_cursor, encode_cursor, fingerprint, sort_key
from engine.errors import InvalidFilterError


def test_cursor_round_trip():
    cursor = Cursor(start_ms=1234, correlation_id="abc", anchor_ms=99, fingerprint=fingerprint("{}"))
    token = encode_cursor(cursor)
    assert "=" not in token
    assert decode_cursor(token) == cursor
    assert cursor.in_started_segment


def test_cursor_without_start_points_into_trailing_segment():
    cursor = decode_cursor(encode_cursor(Cursor(start_ms=None, correlation_id="x", anchor_ms=1, fingerprint="f")))
    assert cursor.start_ms is None
    assert not cursor.in_started_segment


@pytest.mark.parametrize(
    "token",
    [
        "not-base64!!",
        base64.urlsafe_b64encode(b"[1,2]").decode(),
        base64.urlsafe_b64encode(b'{"v":1,"k":"a","a":1,"w":1,"f":"x"}').decode(),
        base64.urlsafe_b64encode(b'{"v":2,"k":"","a":1,"f":"x"}').decode(),
        base64.urlsafe_b64encode(b'{"v":2,"k":"a","a":"later","f":"x"}').decode(),
        base64.urlsafe_b64encode(b'{"v":2,"s":"soon","k":"a","a":1,"f":"x"}').decode(),
    ],
)
def test_malformed_cursor_is_rejected(token):
    with pytest.raises(InvalidFilterError):
        decode_cursor(token)


def test_sort_key_orders_newest_first_then_id_then_unstarted():
    keys = sorted([sort_key(100, "b"), sort_key(None, "m"), sort_key(200, "z"), sort_key(100, "a"), sort_key(None, "c")])
    assert keys == [sort_key(200, "z"), sort_key(100, "a"), sort_key(100, "b"), sort_key(None, "c"), sort_key(None, "m")]
