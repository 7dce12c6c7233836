# Copyright 2026 Justin Cook
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Selector debt: css fallbacks recorded per run, aggregated across runs."""

import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple

from opentelemetry import metrics

from artk_autogen.core.locks import file_lock
from artk_autogen.core.logger import get_logger

logger = get_logger(__name__)
meter = metrics.get_meter(__name__)

css_fallback_counter = meter.create_counter(
    "autogen.selector.css_fallbacks",
    description="Counts locator resolutions that fell back to css.",
)


@dataclass(frozen=True)
class DebtEntry:
    target: str
    selector: str
    file: str
    line: int
    journey_id: str

    @property
    def key(self) -> Tuple[str, str, int]:
        return (self.target, self.file, self.line)


class DebtRecorder:
    """Collects the css fallbacks of one generation run."""

    def __init__(self):
        self._entries: List[DebtEntry] = []
        self._lock = threading.Lock()

    def record(self, entry: DebtEntry) -> None:
        with self._lock:
            self._entries.append(entry)
        css_fallback_counter.add(1, {"journey": entry.journey_id})
        logger.info(f"css fallback for {entry.target!r} ({entry.file}:{entry.line}): {entry.selector}")

    @property
    def entries(self) -> Tuple[DebtEntry, ...]:
        with self._lock:
            return tuple(self._entries)


def load_debt_report(path: Path) -> List[Dict]:
    """Return aggregate debt rows, highest count first."""
    if not path.exists():
        return []
    data = json.loads(path.read_text(encoding="utf-8"))
    rows = data.get("entries", [])
    return sorted(rows, key=lambda r: (-r["count"], r["target"], r["file"], r["line"]))


def merge_debt_report(path: Path, entries: Tuple[DebtEntry, ...]) -> List[Dict]:
    """Fold one run's debt into the aggregate report, counting repeat hits."""
    if not entries:
        return load_debt_report(path)

    with file_lock(path):
        rows = {(r["target"], r["file"], r["line"]): r for r in load_debt_report(path)}
        for entry in entries:
            row = rows.get(entry.key)
            if row is None:
                row = {
                    "target": entry.target,
                    "file": entry.file,
                    "line": entry.line,
                    "count": 0,
                    "journeys": [],
                }
                rows[entry.key] = row
            row["count"] += 1
            row["selector"] = entry.selector
            if entry.journey_id not in row["journeys"]:
                row["journeys"] = sorted(row["journeys"] + [entry.journey_id])

        ordered = sorted(rows.values(), key=lambda r: (-r["count"], r["target"], r["file"], r["line"]))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"version": 1, "entries": ordered}, indent=2, sort_keys=True) + "\n")
    logger.debug(f"Merged {len(entries)} debt entries into {path}")
    return ordered
