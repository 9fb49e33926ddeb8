import hashlib

from store import keys


def test_slug_consistency():
    v = "hello"
    assert keys._slug(v) == hashlib.sha256(v.encode()).hexdigest()[:32]


def test_keys_format():
    idx = "logs-mulesoft-default"
    assert keys.count(idx, "{}") == f"ct:{idx}:count:{keys._slug('{}')}"
    assert keys.query_metrics(idx) == f"ct:{idx}:query-metrics"
