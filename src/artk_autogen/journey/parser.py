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

"""Journey store: load, validate and normalize Journey documents.

A Journey is markdown with YAML front-matter::

    ---
    id: JRN-0001
    title: User logs in
    status: clarified
    tier: smoke
    scope: auth
    actor: standard-user
    ---

    ## Acceptance Criteria

    ### AC-1: Login form accepts credentials
    - Navigate to "/login"
    - Click the Submit button

    ## Procedural Steps

    1. The "Welcome" heading is visible (AC-1)
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Literal, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from artk_autogen.core.errors import ParseError
from artk_autogen.core.logger import get_logger
from artk_autogen.journey.hints import StepHint, parse_hints

logger = get_logger(__name__)

JOURNEY_ID_PATTERN = r"^JRN-\d{4}$"
REQUIRED_FIELDS = ("id", "title", "status", "tier", "scope", "actor")
READY_STATUS = "clarified"

FRONTMATTER = re.compile(r"\A---[ \t]*\n(.*?)\n---[ \t]*(?:\n|\Z)", re.DOTALL)
SECTION_HEADING = re.compile(r"^##\s+(.+?)\s*$")
AC_HEADING = re.compile(r"^###\s+(AC-\d+)\s*[:.\-]?\s*(.*?)\s*$", re.IGNORECASE)
BULLET = re.compile(r"^\s*[-*+]\s+(.+?)\s*$")
NUMBERED = re.compile(r"^\s*\d+[.)]\s+(.+?)\s*$")
AC_REFERENCE = re.compile(r"\(\s*(AC-\d+)\s*\)", re.IGNORECASE)


class CompletionSignal(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["url", "toast", "element", "text", "title"]
    value: str = Field(..., min_length=1)


class JourneyModules(BaseModel):
    model_config = ConfigDict(frozen=True)

    foundation: Tuple[str, ...] = ()
    features: Tuple[str, ...] = ()


class DataPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    strategy: Literal["seed", "create", "reuse"] = "create"
    cleanup: Literal["required", "best-effort", "none"] = "best-effort"


class JourneyFrontmatter(BaseModel):
    """Front-matter schema. Unknown keys are kept for forward compatibility."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str = Field(..., pattern=JOURNEY_ID_PATTERN)
    title: str = Field(..., min_length=1)
    status: Literal[
        "draft", "proposed", "defined", "clarified", "implemented", "quarantined", "deprecated"
    ]
    tier: Literal["smoke", "release", "regression"]
    scope: str = Field(..., min_length=1)
    actor: str = Field(..., min_length=1)
    revision: int = Field(1, ge=1)
    owner: Optional[str] = None
    modules: JourneyModules = JourneyModules()
    tags: Tuple[str, ...] = ()
    prerequisites: Tuple[str, ...] = ()
    completion: Tuple[CompletionSignal, ...] = ()
    data: Optional[DataPolicy] = None


@dataclass(frozen=True)
class AcceptanceCriterion:
    id: str
    title: str


@dataclass(frozen=True)
class JourneyStep:
    """One normalized step: visible text, extracted hint, owning criterion."""

    index: int
    text: str
    acceptance_criterion_id: str
    hint: Optional[StepHint] = None
    line: Optional[int] = None


@dataclass(frozen=True)
class Journey:
    frontmatter: JourneyFrontmatter
    acceptance_criteria: Tuple[AcceptanceCriterion, ...]
    steps: Tuple[JourneyStep, ...]
    source: Optional[Path] = None

    @property
    def id(self) -> str:
        return self.frontmatter.id

    @property
    def feature_module(self) -> str:
        """Module file name the generated locators go to."""
        if self.frontmatter.modules.features:
            return _module_name(self.frontmatter.modules.features[0])
        return _module_name(self.frontmatter.scope)


def _module_name(raw: str) -> str:
    name = re.sub(r"[^a-z0-9_]+", "_", raw.lower()).strip("_")
    if not name or name[0].isdigit():
        name = f"m_{name}"
    return name


def _split_frontmatter(text: str, source: Optional[Path]) -> Tuple[Dict, str, int]:
    match = FRONTMATTER.match(text)
    if not match:
        raise ParseError("missing YAML front-matter block", source=source)
    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        raise ParseError(f"invalid YAML front-matter: {e}", source=source) from e
    if not isinstance(data, dict):
        raise ParseError("front-matter must be a mapping", source=source)
    body_offset = text[: match.end()].count("\n")
    return data, text[match.end():], body_offset


def _validate_frontmatter(data: Dict, source: Optional[Path]) -> JourneyFrontmatter:
    journey_id = data.get("id") if isinstance(data.get("id"), str) else None
    missing = [f for f in REQUIRED_FIELDS if data.get(f) in (None, "")]
    if missing:
        raise ParseError(
            f"missing required front-matter fields: {', '.join(missing)}",
            journey_id=journey_id,
            source=source,
        )
    try:
        frontmatter = JourneyFrontmatter(**data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ParseError(f"invalid front-matter: {problems}", journey_id=journey_id, source=source) from e
    if frontmatter.status != READY_STATUS:
        raise ParseError(
            f"status is '{frontmatter.status}'; only '{READY_STATUS}' journeys can be generated",
            journey_id=frontmatter.id,
            source=source,
        )
    return frontmatter


def _sections(body: str, offset: int) -> Dict[str, List[Tuple[int, str]]]:
    """Group body lines under their ``##`` heading, keeping 1-based file line numbers."""
    sections: Dict[str, List[Tuple[int, str]]] = {}
    current: Optional[str] = None
    for number, line in enumerate(body.splitlines(), start=offset + 1):
        heading = SECTION_HEADING.match(line)
        if heading:
            current = heading.group(1).strip().lower()
            sections.setdefault(current, [])
            continue
        if current is not None:
            sections[current].append((number, line))
    return sections


def _completion_step_text(signal: CompletionSignal) -> Tuple[str, Optional[StepHint]]:
    if signal.type == "url":
        return f'Wait for navigation to "{signal.value}"', None
    if signal.type == "element":
        return f'User should see "{signal.value}"', StepHint(testid=signal.value)
    if signal.type == "title":
        return f'The "{signal.value}" heading is visible', None
    return f'User should see "{signal.value}"', None


def parse_journey_text(text: str, source: Optional[Path] = None) -> Journey:
    """Parse and normalize one Journey document.

    Raises:
        ParseError: front-matter missing or invalid, status not ``clarified``,
            duplicate or unknown acceptance-criterion ids, or bad hints.
    """
    data, body, offset = _split_frontmatter(text, source)
    frontmatter = _validate_frontmatter(data, source)
    journey_id = frontmatter.id
    sections = _sections(body, offset)

    criteria: List[AcceptanceCriterion] = []
    raw_steps: Dict[str, List[Tuple[int, str]]] = {}
    current_ac: Optional[str] = None
    for number, line in sections.get("acceptance criteria", []):
        heading = AC_HEADING.match(line)
        if heading:
            ac_id = heading.group(1).upper()
            if ac_id in raw_steps:
                raise ParseError(f"duplicate acceptance criterion id {ac_id}", journey_id=journey_id, source=source)
            criteria.append(AcceptanceCriterion(id=ac_id, title=heading.group(2)))
            raw_steps[ac_id] = []
            current_ac = ac_id
            continue
        bullet = BULLET.match(line)
        if bullet and current_ac:
            raw_steps[current_ac].append((number, bullet.group(1)))

    if not criteria:
        raise ParseError("no acceptance criteria found", journey_id=journey_id, source=source)

    # Procedural steps join the criterion they reference; unlinked steps
    # follow the previous step's criterion.
    linked_ac = criteria[0].id
    for number, line in sections.get("procedural steps", []):
        numbered = NUMBERED.match(line)
        if not numbered:
            continue
        step_text = numbered.group(1)
        reference = AC_REFERENCE.search(step_text)
        if reference:
            linked_ac = reference.group(1).upper()
            if linked_ac not in raw_steps:
                raise ParseError(
                    f"procedural step on line {number} references unknown criterion {linked_ac}",
                    journey_id=journey_id,
                    source=source,
                )
            step_text = AC_REFERENCE.sub("", step_text).strip()
        raw_steps[linked_ac].append((number, step_text))

    steps: List[JourneyStep] = []
    for criterion in criteria:
        for number, raw in raw_steps[criterion.id]:
            try:
                clean, hint = parse_hints(raw)
            except ValueError as e:
                raise ParseError(f"line {number}: {e}", journey_id=journey_id, source=source) from e
            steps.append(JourneyStep(len(steps) + 1, clean, criterion.id, hint, number))

    for signal in frontmatter.completion:
        clean, hint = _completion_step_text(signal)
        steps.append(JourneyStep(len(steps) + 1, clean, criteria[-1].id, hint, None))

    logger.debug(f"Parsed {journey_id}: {len(criteria)} criteria, {len(steps)} steps")
    return Journey(frontmatter, tuple(criteria), tuple(steps), source)


def find_journey_file(journey_id: str, journeys_dir: Path) -> Path:
    """Locate ``<journey_id>*.md`` under the journeys directory."""
    if not re.match(JOURNEY_ID_PATTERN, journey_id):
        raise ParseError(f"invalid journey id {journey_id!r}", journey_id=journey_id)
    if not journeys_dir.exists():
        raise ParseError(f"journeys directory {journeys_dir} does not exist", journey_id=journey_id)
    matches = sorted(journeys_dir.rglob(f"{journey_id}*.md"))
    if not matches:
        raise ParseError(f"no journey file found in {journeys_dir}", journey_id=journey_id)
    if len(matches) > 1:
        names = ", ".join(str(m.relative_to(journeys_dir)) for m in matches)
        raise ParseError(f"multiple journey files match: {names}", journey_id=journey_id)
    return matches[0]


def load_journey(journey_id: str, journeys_dir: Path) -> Journey:
    """Read the Journey fresh from disk; nothing is cached between calls."""
    path = find_journey_file(journey_id, journeys_dir)
    journey = parse_journey_text(path.read_text(encoding="utf-8"), source=path)
    if journey.id != journey_id:
        raise ParseError(f"file declares id {journey.id}", journey_id=journey_id, source=path)
    return journey
