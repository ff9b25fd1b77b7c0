"""Tests for audit log."""

from neuralearn.store.audit_log import GLOBAL_TOPIC, AuditLog


def test_record_and_read(tmp_path):
    """Record an event and read it back."""
    audit = AuditLog(tmp_path)
    audit.record("node_created", "t1", node_id="n1", parent_id="t1")

    entries = audit.read("t1")
    assert len(entries) == 1
    assert entries[0]["event"] == "node_created"
    assert entries[0]["topic_id"] == "t1"
    assert entries[0]["node_id"] == "n1"
    assert "timestamp" in entries[0]


def test_topics_stay_separate(tmp_path):
    """Events for different topics go to different files."""
    audit = AuditLog(tmp_path)
    audit.record("topic_created", "t1")
    audit.record("topic_created", "t2")
    audit.record("maintenance")

    assert len(audit.read("t1")) == 1
    assert len(audit.read("t2")) == 1
    assert audit.read(GLOBAL_TOPIC)[0]["event"] == "maintenance"


def test_unsafe_topic_id_is_sanitised(tmp_path):
    audit = AuditLog(tmp_path)
    audit.record("topic_created", "../escape")

    assert len(audit.read("../escape")) == 1
    assert all(p.parent == tmp_path for p in tmp_path.iterdir())


def test_read_limit(tmp_path):
    audit = AuditLog(tmp_path)
    for i in range(10):
        audit.record(f"event_{i}", "t1")

    entries = audit.read("t1", limit=3)
    assert [e["event"] for e in entries] == ["event_7", "event_8", "event_9"]


def test_compact(tmp_path):
    """Compact keeps only the last N events."""
    audit = AuditLog(tmp_path)
    for i in range(20):
        audit.record(f"event_{i}", "t1")

    removed = audit.compact("t1", keep=5)
    assert removed == 15

    entries = audit.read("t1")
    assert len(entries) == 5
    assert entries[0]["event"] == "event_15"
    assert audit.compact("t1", keep=5) == 0


def test_read_empty(tmp_path):
    """Reading an unknown topic returns an empty list."""
    audit = AuditLog(tmp_path)
    assert audit.read("nonexistent") == []
    assert audit.compact("nonexistent") == 0


def test_read_zero_limit_returns_nothing(tmp_path):
    audit = AuditLog(tmp_path)
    for i in range(5):
        audit.record(f"event_{i}", "t1")

    assert audit.read("t1", limit=0) == []
    assert audit.read("t1", limit=-1) == []


def test_compact_keep_zero_empties_the_log(tmp_path):
    audit = AuditLog(tmp_path)
    for i in range(5):
        audit.record(f"event_{i}", "t1")

    assert audit.compact("t1", keep=0) == 5
    assert audit.read("t1") == []
    assert audit.compact("t1", keep=0) == 0

    audit.record("after", "t1")
    assert [e["event"] for e in audit.read("t1")] == ["after"]
