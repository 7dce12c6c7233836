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

"""Append-only record of healing attempts."""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from artk_autogen.core.locks import file_lock
from artk_autogen.core.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class HealLogEntry:
    attempt_number: int
    failure_category: str
    rule_applied: str
    diff_summary: str
    result_status: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class HealLog:
    """Entries of one heal-enabled verify call."""

    journey_id: str
    entries: List[HealLogEntry] = field(default_factory=list)
    outcome: Optional[str] = None
    suggestion: Optional[str] = None

    def append(self, entry: HealLogEntry) -> None:
        self.entries.append(entry)
        logger.info(
            f"{self.journey_id}: heal attempt {entry.attempt_number} "
            f"[{entry.failure_category}] {entry.rule_applied}: {entry.result_status}"
        )

    def to_dict(self) -> Dict:
        return {
            "journey_id": self.journey_id,
            "outcome": self.outcome,
            "suggestion": self.suggestion,
            "entries": [e.to_dict() for e in self.entries],
        }


def append_heal_log(path: Path, log: HealLog) -> None:
    """Add one run's record to the heal-log file; earlier runs are kept."""
    with file_lock(path):
        runs: List[Dict] = []
        if path.exists():
            try:
                runs = json.loads(path.read_text(encoding="utf-8")).get("runs", [])
            except (json.JSONDecodeError, AttributeError):
                logger.warning(f"Heal log {path} was unreadable; starting a new one")
        runs.append({**log.to_dict(), "recorded_at": datetime.now(timezone.utc).isoformat()})
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"version": 1, "runs": runs}, indent=2, sort_keys=True) + "\n", encoding="utf-8")
