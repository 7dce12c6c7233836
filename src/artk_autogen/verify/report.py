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

"""Parse the execution host's JUnit XML report into verification results."""

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from artk_autogen.core.errors import VerificationFailure
from artk_autogen.core.logger import get_logger
from artk_autogen.verify.classifier import Classification, classify

logger = get_logger(__name__)

EVIDENCE_MARKER = "aria-snapshot"
MAX_EVIDENCE_CHARS = 4000


@dataclass
class ScenarioResult:
    name: str
    status: str
    duration: float = 0.0
    file: Optional[str] = None
    signature: Optional[str] = None
    evidence: Optional[str] = None
    line: Optional[int] = None
    # What classification reads: the error itself, without echoed test source.
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "status": self.status,
            "duration": self.duration,
            "file": self.file,
            "line": self.line,
            "signature": self.signature,
            "error": self.error,
            "evidence": self.evidence,
        }


@dataclass
class VerificationResult:
    """Outcome of one verify call, including any healing that followed."""

    journey_id: str
    scenarios: List[ScenarioResult] = field(default_factory=list)
    failures: List[VerificationFailure] = field(default_factory=list)
    classifications: List[Classification] = field(default_factory=list)
    blocked: bool = False
    heal_outcome: Optional[str] = None
    heal_attempts: int = 0

    @property
    def status(self) -> str:
        if self.blocked or self.failures:
            return "failed"
        if not self.scenarios:
            return "failed"
        return "passed"

    @property
    def passed(self) -> bool:
        return self.status == "passed"

    @property
    def first_failure(self) -> Optional[VerificationFailure]:
        return self.failures[0] if self.failures else None

    def to_dict(self) -> Dict:
        return {
            "journey_id": self.journey_id,
            "status": self.status,
            "blocked_by_validation": self.blocked,
            "scenarios": [s.to_dict() for s in self.scenarios],
            "failures": [
                {**f.to_dict(), "classification": c.to_dict()}
                for f, c in zip(self.failures, self.classifications)
            ],
            "heal_outcome": self.heal_outcome,
            "heal_attempts": self.heal_attempts,
            "verified_at": datetime.now(timezone.utc).isoformat(),
        }


def failure_line(signature: str, test_file_name: str) -> Optional[int]:
    """The last line of ``test_file_name`` mentioned in a traceback."""
    matches = re.findall(rf"{re.escape(test_file_name)}:(\d+)", signature)
    return int(matches[-1]) if matches else None


def error_text(message: str, body: str) -> str:
    """The failure message and pytest's ``E`` lines of a failure body.

    Pytest repeats the failing test's source above the error; that text comes
    from the Journey and must not decide the failure category. Bodies without
    ``E`` lines are used whole.
    """
    errors = [line[1:].strip() for line in body.splitlines() if line.startswith("E ")]
    if not errors:
        return f"{message}\n{body}".strip()
    if message and message.strip() not in errors:
        errors.insert(0, message.strip())
    return "\n".join(errors)


def _evidence(case: ET.Element) -> Optional[str]:
    for tag in ("system-out", "system-err"):
        node = case.find(tag)
        if node is None or not node.text:
            continue
        position = node.text.find(EVIDENCE_MARKER)
        if position >= 0:
            return node.text[position:position + MAX_EVIDENCE_CHARS].strip()
    return None


def parse_junit(path: Path, test_file_name: str) -> List[ScenarioResult]:
    """Read every ``testcase`` element of a JUnit XML report.

    Raises:
        ET.ParseError: the report is not well-formed XML.
    """
    root = ET.parse(path).getroot()
    scenarios = []
    for case in root.iter("testcase"):
        name = case.get("name", "unknown")
        classname = case.get("classname")
        problem = case.find("failure")
        if problem is None:
            problem = case.find("error")
        skipped = case.find("skipped")

        scenario = ScenarioResult(
            name=f"{classname}::{name}" if classname else name,
            status="passed",
            duration=float(case.get("time") or 0.0),
            file=case.get("file"),
        )
        if problem is not None:
            scenario.status = "failed"
            message = problem.get("message") or ""
            body = problem.text or ""
            scenario.signature = f"{message}\n{body}".strip()
            scenario.error = error_text(message, body)
            scenario.line = failure_line(scenario.signature, test_file_name)
            scenario.evidence = _evidence(case)
        elif skipped is not None:
            scenario.status = "skipped"
        scenarios.append(scenario)
    logger.debug(f"Parsed {len(scenarios)} scenarios from {path}")
    return scenarios


def build_result(journey_id: str, scenarios: List[ScenarioResult]) -> VerificationResult:
    result = VerificationResult(journey_id=journey_id, scenarios=scenarios)
    for scenario in scenarios:
        if scenario.status != "failed":
            continue
        classification = classify(scenario.error or scenario.signature)
        result.failures.append(VerificationFailure(
            scenario=scenario.name,
            signature=scenario.signature or "",
            category=classification.category,
            evidence=scenario.evidence,
            location=scenario.line,
        ))
        result.classifications.append(classification)
    return result


def environment_failure(journey_id: str, scenario: str, signature: str) -> VerificationResult:
    """A result for a run that produced no usable report."""
    classification = classify(signature)
    if classification.category != "environment":
        classification = Classification(
            category="environment",
            confidence=1.0,
            explanation="The execution host did not produce a report",
            suggestion=classification.suggestion,
        )
    return VerificationResult(
        journey_id=journey_id,
        failures=[VerificationFailure(scenario, signature, category="environment")],
        classifications=[classification],
    )
