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

"""Error taxonomy for the generation pipeline.

Each stage raises its own type so callers can tell a bad Journey apart from
bad generated code.
"""

from pathlib import Path
from typing import Optional


class AutoGenError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(AutoGenError):
    """Raised when the policy document or selector catalog is invalid."""


class ParseError(AutoGenError):
    """Raised when a Journey is malformed or not ready for generation."""

    def __init__(self, reason: str, journey_id: Optional[str] = None, source: Optional[Path] = None):
        self.reason = reason
        self.journey_id = journey_id
        self.source = source
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        where = self.journey_id or (str(self.source) if self.source else "journey")
        return f"{where}: {self.reason}"


class MappingError(AutoGenError):
    """Raised when a step cannot be mapped to exactly one IR primitive."""

    def __init__(self, step_index: int, reason: str, step_text: str = "", suggestion: str = ""):
        self.step_index = step_index
        self.reason = reason
        self.step_text = step_text
        self.suggestion = suggestion
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        message = f"step {self.step_index} ({self.step_text!r}): {self.reason}"
        if self.suggestion:
            message += f"\n  Hint: {self.suggestion}"
        return message


class GenerationError(AutoGenError):
    """Raised when a generated-block anchor is missing or corrupted."""

    def __init__(self, path: Path, reason: str, anchor: Optional[str] = None):
        self.path = path
        self.anchor = anchor
        self.reason = reason
        detail = f" (anchor {anchor!r})" if anchor else ""
        super().__init__(f"{path}: {reason}{detail}")


class VerificationFailure(AutoGenError):
    """A classified failure of one executed scenario."""

    def __init__(
        self,
        scenario: str,
        signature: str,
        category: str = "environment",
        evidence: Optional[str] = None,
        location: Optional[int] = None,
    ):
        self.scenario = scenario
        self.signature = signature
        self.category = category
        self.evidence = evidence
        self.location = location
        super().__init__(f"{scenario} [{category}]: {signature.splitlines()[0] if signature else ''}")

    def to_dict(self) -> dict:
        return {
            "scenario": self.scenario,
            "signature": self.signature,
            "category": self.category,
            "evidence": self.evidence,
            "location": self.location,
        }
