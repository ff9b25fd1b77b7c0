"""JSONL append-only trail of structural graph mutations, one file per topic."""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

GLOBAL_TOPIC = "_global"


class AuditLog:
    """Records topic creation, node creation/relinking and summary refinement."""

    def __init__(self, audit_dir: Path) -> None:
        self._dir = Path(audit_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _log_file(self, topic_id: str) -> Path:
        safe_name = "".join(c if c.isalnum() or c in "-_" else "_" for c in topic_id)
        return self._dir / f"{safe_name or GLOBAL_TOPIC}.jsonl"

    def record(
        self,
        event: str,
        topic_id: str = GLOBAL_TOPIC,
        **details: Any,
    ) -> None:
        """Append one event for a topic."""
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event,
            "topic_id": topic_id,
            **details,
        }
        with self._lock, open(self._log_file(topic_id), "a") as f:
            f.write(json.dumps(entry) + "\n")

    def read(self, topic_id: str = GLOBAL_TOPIC, limit: int = 100) -> list[dict[str, Any]]:
        """Read the last N events for a topic."""
        path = self._log_file(topic_id)
        if limit <= 0 or not path.exists():
            return []
        lines = path.read_text().strip().split("\n")
        return [json.loads(line) for line in lines if line][-limit:]

    def compact(self, topic_id: str = GLOBAL_TOPIC, keep: int = 1000) -> int:
        """Keep only the last N events, return number removed."""
        path = self._log_file(topic_id)
        if not path.exists():
            return 0
        with self._lock:
            lines = [line for line in path.read_text().strip().split("\n") if line]
            kept = lines[-keep:] if keep > 0 else []
            if len(kept) == len(lines):
                return 0
            path.write_text("".join(line + "\n" for line in kept))
        return len(lines) - len(kept)
