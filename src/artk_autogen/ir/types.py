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

"""Intermediate representation of test intent.

``IRPrimitive`` is a closed set. Every consumer (mapper, renderer, validator,
healing fixes) keeps a table keyed by primitive and checks at import time that
the table covers all members, so a new primitive cannot be added silently.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Mapping, Optional, Tuple


class IRPrimitive(str, Enum):
    NAVIGATE = "navigate"
    CLICK = "click"
    FILL = "fill"
    SELECT = "select"
    ASSERT_VISIBLE = "assert-visible"
    ASSERT_TEXT = "assert-text"
    WAIT_FOR_STATE = "wait-for-state"
    CUSTOM_MODULE_CALL = "custom-module-call"


LOCATOR_PRIMITIVES = frozenset({
    IRPrimitive.CLICK,
    IRPrimitive.FILL,
    IRPrimitive.SELECT,
    IRPrimitive.ASSERT_VISIBLE,
    IRPrimitive.ASSERT_TEXT,
})


def ensure_exhaustive(table: Mapping[IRPrimitive, object], consumer: str) -> None:
    """Fail at import time when ``table`` does not handle every primitive."""
    missing = [p.value for p in IRPrimitive if p not in table]
    if missing:
        raise TypeError(f"{consumer} does not handle primitives: {', '.join(missing)}")


class LocatorStrategy(str, Enum):
    ROLE = "role"
    LABEL = "label"
    TEST_ID = "test-id"
    TEXT = "text"
    CSS = "css"


# Highest priority first.
STRATEGY_PRIORITY: Tuple[LocatorStrategy, ...] = (
    LocatorStrategy.ROLE,
    LocatorStrategy.LABEL,
    LocatorStrategy.TEST_ID,
    LocatorStrategy.TEXT,
    LocatorStrategy.CSS,
)


def strategy_rank(strategy: LocatorStrategy) -> int:
    return STRATEGY_PRIORITY.index(strategy)


@dataclass(frozen=True)
class LocatorSpec:
    strategy: LocatorStrategy
    value: str
    name: Optional[str] = None
    exact: Optional[bool] = None
    level: Optional[int] = None

    def describe(self) -> str:
        extras = []
        if self.name is not None:
            extras.append(f"name={self.name!r}")
        if self.exact:
            extras.append("exact")
        if self.level is not None:
            extras.append(f"level={self.level}")
        suffix = f"[{', '.join(extras)}]" if extras else ""
        return f"{self.strategy.value}={self.value!r}{suffix}"


class ValueKind(str, Enum):
    LITERAL = "literal"
    VARIABLE = "variable"
    TEMPLATE = "template"


@dataclass(frozen=True)
class ValueSpec:
    """A step value.

    ``literal`` is used inline; ``variable`` names a run-scoped value (its
    ``value`` is the base text that gets namespaced per run); ``template``
    holds ``{{placeholder}}`` markers resolved at generation time.
    """

    kind: ValueKind
    value: str

    @classmethod
    def literal(cls, value: str) -> "ValueSpec":
        return cls(ValueKind.LITERAL, value)

    @classmethod
    def variable(cls, value: str) -> "ValueSpec":
        return cls(ValueKind.VARIABLE, value)

    @classmethod
    def template(cls, value: str) -> "ValueSpec":
        return cls(ValueKind.TEMPLATE, value)


@dataclass(frozen=True)
class TargetRef:
    """What the step text said about its target, kept for re-resolution."""

    description: str
    kind: Optional[str] = None


@dataclass(frozen=True)
class ModuleCall:
    module: str
    method: str
    args: Tuple[str, ...] = ()
    # None: decided from the module source at generation time.
    awaited: Optional[bool] = None

    @property
    def qualified_name(self) -> str:
        return f"{self.module}.{self.method}"


@dataclass(frozen=True)
class IRStep:
    acceptance_criterion_id: str
    primitive: IRPrimitive
    locator: Optional[LocatorSpec]
    value: Optional[ValueSpec]
    source_step_text: str
    index: int = 0
    target: Optional[TargetRef] = None
    module_call: Optional[ModuleCall] = None
    timeout: Optional[int] = None
    source_line: Optional[int] = None

    def evolve(self, **changes) -> "IRStep":
        return replace(self, **changes)


@dataclass(frozen=True)
class IRJourney:
    journey_id: str
    title: str
    tier: str
    scope: str
    actor: str
    module: str
    steps: Tuple[IRStep, ...] = ()
    acceptance_criteria: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    source_file: Optional[str] = None

    def steps_for(self, acceptance_criterion_id: str) -> Tuple[IRStep, ...]:
        return tuple(s for s in self.steps if s.acceptance_criterion_id == acceptance_criterion_id)

    def with_steps(self, steps: Iterable[IRStep]) -> "IRJourney":
        """Return a copy with ``steps`` re-indexed in order."""
        reindexed = tuple(s.evolve(index=i) for i, s in enumerate(steps, start=1))
        return replace(self, steps=reindexed)

    def step(self, index: int) -> Optional[IRStep]:
        for s in self.steps:
            if s.index == index:
                return s
        return None
