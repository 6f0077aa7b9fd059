from __future__ import annotations

import csv
import json
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional


@dataclass
class MemoryProfiler:
    """
    Event log for a Partition.

    The partition reports `allocate`, `allocate_failed`, `release`,
    `release_failed` and `compact` events. Each record carries the owner, size,
    strategy or swap count that applies, plus the partition's `free_total` and
    `fragmentation` after the call, so the log doubles as a timeline of the
    address space. Records stay in memory and can be flushed to
    `<run_id>.jsonl` and `<run_id>.csv` under `output_dir`.
    """

    run_id: str
    output_dir: Optional[str] = None
    write_immediately: bool = False
    events: List[Dict[str, object]] = field(default_factory=list)

    def record_event(self, event_type: str, payload: Dict[str, object]) -> None:
        record = {
            "timestamp": time.time(),
            "run_id": self.run_id,
            "event": event_type,
            **payload,
        }
        self.events.append(record)
        if self.write_immediately and self.output_dir:
            self._append_jsonl(record)

    def events_of(self, event_type: str) -> List[Dict[str, object]]:
        return [record for record in self.events if record["event"] == event_type]

    def series(self, key: str) -> List[object]:
        """Values of `key` across all events that carry it, e.g. `free_total`."""
        return [record[key] for record in self.events if key in record]

    def failures(self) -> Dict[str, int]:
        """Failed allocations per reason (duplicate, out_of_space, ...)."""
        return dict(
            Counter(str(record.get("reason")) for record in self.events if record["event"] == "allocate_failed")
        )

    def counts(self) -> Dict[str, int]:
        """Number of recorded events per event name."""
        return dict(Counter(str(record["event"]) for record in self.events))

    def flush(self) -> None:
        if not self.output_dir or not self.events:
            return
        output_path = Path(self.output_dir)
        output_path.mkdir(parents=True, exist_ok=True)
        if not self.write_immediately:
            jsonl_path = output_path / f"{self.run_id}.jsonl"
            with jsonl_path.open("w", encoding="utf-8") as handle:
                for record in self.events:
                    handle.write(json.dumps(record) + "\n")
        # Events carry different keys, so the CSV header is the union of all of them.
        fieldnames = sorted({key for event in self.events for key in event.keys()})
        csv_path = output_path / f"{self.run_id}.csv"
        with csv_path.open("w", newline="", encoding="utf-8") as handle:
            writer = csv.DictWriter(handle, fieldnames=fieldnames)
            writer.writeheader()
            writer.writerows(self.events)

    def _append_jsonl(self, record: Dict[str, object]) -> None:
        output_path = Path(self.output_dir)
        output_path.mkdir(parents=True, exist_ok=True)
        jsonl_path = output_path / f"{self.run_id}.jsonl"
        with jsonl_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")
