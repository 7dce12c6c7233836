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

"""Bounded healing as an explicit state machine.

::

    IDLE -> ATTEMPTING -> SUCCEEDED
                       -> EXHAUSTED
                       -> NO_APPLICABLE_FIX

Each pass through ATTEMPTING applies one allow-listed fix, regenerates,
re-validates, re-verifies and logs exactly one entry. The attempt counter is
checked before every pass, so the number of verify cycles never exceeds the
policy bound.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Tuple

from opentelemetry import metrics, trace

from artk_autogen.codegen.generator import GenerationResult
from artk_autogen.codegen.render import failing_step_index
from artk_autogen.core.logger import get_logger
from artk_autogen.core.policy import HEALABLE_CATEGORIES, Policy
from artk_autogen.heal.fixes import FIXES, FixResult
from artk_autogen.heal.log import HealLog, HealLogEntry
from artk_autogen.ir.types import IRJourney, LocatorStrategy
from artk_autogen.selectors.resolver import SelectorResolver
from artk_autogen.validate.validator import ValidationResult
from artk_autogen.verify.report import VerificationResult

logger = get_logger(__name__)
tracer = trace.get_tracer(__name__)
meter = metrics.get_meter(__name__)

heal_attempts_counter = meter.create_counter(
    "autogen.heal.attempts",
    description="Counts healing attempts by failure category.",
)
heal_outcomes_counter = meter.create_counter(
    "autogen.heal.outcomes",
    description="Counts terminal healing states.",
)


class HealState(str, Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    NO_APPLICABLE_FIX = "no-applicable-fix"


TERMINAL_STATES = frozenset({HealState.SUCCEEDED, HealState.EXHAUSTED, HealState.NO_APPLICABLE_FIX})


@dataclass
class HealReport:
    state: HealState
    ir: IRJourney
    result: VerificationResult
    log: HealLog

    @property
    def attempts(self) -> int:
        return len(self.log.entries)


Generate = Callable[[IRJourney], GenerationResult]
Validate = Callable[[IRJourney, GenerationResult], ValidationResult]
Verify = Callable[[GenerationResult], VerificationResult]


class HealingLoop:
    def __init__(
        self,
        policy: Policy,
        resolver: SelectorResolver,
        generate: Generate,
        validate: Validate,
        verify: Verify,
        max_attempts: Optional[int] = None,
    ):
        self.policy = policy
        self.resolver = resolver
        self._generate = generate
        self._validate = validate
        self._verify = verify
        self.max_attempts = policy.healing.max_attempts if max_attempts is None else max_attempts
        self.state = HealState.IDLE

    def _failing_index(self, result: VerificationResult, test_file: Path) -> Optional[int]:
        failure = result.first_failure
        if failure is None or failure.location is None or not test_file.exists():
            return None
        return failing_step_index(test_file.read_text(encoding="utf-8"), failure.location)

    def _choose_fix(self, category: str, ir: IRJourney, index: Optional[int]) -> Optional[Tuple[str, FixResult]]:
        for name in self.policy.fixes_for(category):
            outcome = FIXES[name](ir, index, self.resolver)
            if outcome is not None:
                return name, outcome
        return None

    def _suggestion(self, ir: IRJourney, original: IRJourney) -> Optional[str]:
        """A hint the author can add so a fresh generate keeps the healed locators."""
        # Inserted steps shift indices, so steps are paired by their origin.
        before = {(s.acceptance_criterion_id, s.source_line, s.source_step_text): s.locator for s in original.steps}
        for healed in ir.steps:
            key = (healed.acceptance_criterion_id, healed.source_line, healed.source_step_text)
            if key in before and healed.locator is not None and healed.locator != before[key]:
                spec = healed.locator
                if spec.strategy is LocatorStrategy.ROLE:
                    hint = f"(role={spec.value}, name=\"{spec.name}\")"
                elif spec.strategy is LocatorStrategy.TEST_ID:
                    hint = f"(testid={spec.value})"
                elif spec.strategy is LocatorStrategy.LABEL:
                    hint = f"(label=\"{spec.value}\")"
                else:
                    hint = f"(text=\"{spec.value}\")"
                return f"Add {hint} to step: {healed.source_step_text}"
        return None

    def _finish(self, state: HealState, ir: IRJourney, original: IRJourney, result: VerificationResult, log: HealLog) -> HealReport:
        self.state = state
        log.outcome = state.value
        if state is HealState.SUCCEEDED:
            log.suggestion = self._suggestion(ir, original)
        result.heal_outcome = state.value
        result.heal_attempts = len(log.entries)
        heal_outcomes_counter.add(1, {"state": state.value})
        logger.info(f"{ir.journey_id}: healing finished {state.value} after {len(log.entries)} attempt(s)")
        return HealReport(state, ir, result, log)

    def run(self, ir: IRJourney, generation: GenerationResult, result: VerificationResult) -> HealReport:
        """Heal a failed verification of ``ir``.

        Args:
            ir: The IR the failing code was generated from.
            generation: Where that code was written.
            result: The failed verification to start from.

        Returns:
            HealReport with the terminal state, the last IR and result, and
            the log of every attempt.
        """
        log = HealLog(journey_id=ir.journey_id)
        original = ir
        attempt = 0
        index: Optional[int] = None
        # Whether ``result`` came from running the current ``generation``.
        current = True
        self.state = HealState.IDLE

        with tracer.start_as_current_span("autogen.heal") as span:
            span.set_attribute("journey.id", ir.journey_id)
            span.set_attribute("heal.max_attempts", self.max_attempts)
            while self.state not in TERMINAL_STATES:
                if result.passed:
                    return self._finish(HealState.SUCCEEDED, ir, original, result, log)
                if attempt >= self.max_attempts:
                    return self._finish(HealState.EXHAUSTED, ir, original, result, log)

                failure = result.first_failure
                category = failure.category if failure else "environment"
                if category not in HEALABLE_CATEGORIES:
                    return self._finish(HealState.NO_APPLICABLE_FIX, ir, original, result, log)

                if current:
                    index = self._failing_index(result, generation.test_file)
                chosen = self._choose_fix(category, ir, index)
                if chosen is None:
                    return self._finish(HealState.NO_APPLICABLE_FIX, ir, original, result, log)

                self.state = HealState.ATTEMPTING
                attempt += 1
                name, fix = chosen
                heal_attempts_counter.add(1, {"category": category, "fix": name})
                ir = fix.ir
                generation = self._generate(ir)
                validation = self._validate(ir, generation)
                current = validation.passed
                if validation.passed:
                    result = self._verify(generation)
                    status = "succeeded" if result.passed else "failed"
                    summary = fix.summary
                else:
                    # Blocked code is not run; the previous failure stands on the same step.
                    if fix.moved_to is not None:
                        index = fix.moved_to
                    status = "failed"
                    summary = f"{fix.summary} (validation failed: {validation.errors[0].message})"
                log.append(HealLogEntry(
                    attempt_number=attempt,
                    failure_category=category,
                    rule_applied=name,
                    diff_summary=summary,
                    result_status=status,
                ))
                span.set_attribute("heal.attempts", attempt)
        return HealReport(self.state, ir, result, log)
