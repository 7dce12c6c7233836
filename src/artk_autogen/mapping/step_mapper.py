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

"""Map one normalized Journey step to one IR step.

Order of precedence:

1. A hint that fully specifies the step (``action`` plus a locator, or
   ``module``) is used verbatim.
2. Glossary module-method phrases ("login" -> ``auth.login``).
3. Pattern rules over glossary-normalized text, with target names and values
   taken from the original wording. An ``action`` hint narrows the
   candidates; a locator hint replaces the inferred locator. Hover, key
   presses and drags have no primitive and fail with a module-hint suggestion;
   a misspelled leading verb gets one retry after a close-match repair.

The mapper is a pure function of the step, glossary and catalog. Css debt is
reported to the caller's recorder rather than stored.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from artk_autogen.core.errors import MappingError
from artk_autogen.core.logger import get_logger
from artk_autogen.ir.types import (
    IRPrimitive,
    IRStep,
    ModuleCall,
    TargetRef,
    ValueSpec,
    ensure_exhaustive,
)
from artk_autogen.journey.hints import StepHint
from artk_autogen.journey.parser import JourneyStep
from artk_autogen.mapping.glossary import GlossaryIndex
from artk_autogen.mapping.patterns import (
    PATTERN_RULES,
    Extraction,
    PatternRule,
    match_rules,
    repair_verb,
    unsupported_action,
    value_spec,
)
from artk_autogen.selectors.debt import DebtRecorder
from artk_autogen.selectors.resolver import SelectorResolver

logger = get_logger(__name__)

FIRST_QUOTED = re.compile(r"\"([^\"]*)\"|'([^']*)'")


@dataclass(frozen=True)
class PrimitiveContract:
    needs_locator: bool
    needs_value: bool


CONTRACTS: Dict[IRPrimitive, PrimitiveContract] = {
    IRPrimitive.NAVIGATE: PrimitiveContract(needs_locator=False, needs_value=True),
    IRPrimitive.CLICK: PrimitiveContract(needs_locator=True, needs_value=False),
    IRPrimitive.FILL: PrimitiveContract(needs_locator=True, needs_value=True),
    IRPrimitive.SELECT: PrimitiveContract(needs_locator=True, needs_value=True),
    IRPrimitive.ASSERT_VISIBLE: PrimitiveContract(needs_locator=True, needs_value=False),
    IRPrimitive.ASSERT_TEXT: PrimitiveContract(needs_locator=True, needs_value=True),
    IRPrimitive.WAIT_FOR_STATE: PrimitiveContract(needs_locator=False, needs_value=True),
    IRPrimitive.CUSTOM_MODULE_CALL: PrimitiveContract(needs_locator=False, needs_value=False),
}
ensure_exhaustive(CONTRACTS, "step mapper")

NO_MATCH_SUGGESTION = (
    'rephrase the step (e.g. "Click the Save button", "Enter "x" in the Email field") '
    'or add a hint such as (action=click, role=button, name="Save")'
)


def _first_quoted(text: str) -> Optional[str]:
    match = FIRST_QUOTED.search(text)
    if not match:
        return None
    return match.group(1) if match.group(1) is not None else match.group(2)


class StepMapper:
    def __init__(
        self,
        glossary: GlossaryIndex,
        resolver: SelectorResolver,
        rules: Tuple[PatternRule, ...] = PATTERN_RULES,
    ):
        self.glossary = glossary
        self.resolver = resolver
        self.rules = rules

    def map_step(
        self,
        step: JourneyStep,
        debt: Optional[DebtRecorder] = None,
        journey_id: str = "",
        source_file: str = "",
    ) -> IRStep:
        """Map ``step`` to an ``IRStep``.

        Raises:
            MappingError: no rule matches, the best matches disagree on the
                primitive, or the hint contradicts the inferred primitive.
        """
        text = step.text.strip().rstrip(".").strip()
        hint = step.hint

        extraction = self._from_hint(step, text, hint)
        if extraction is None:
            extraction = self._infer(step, text, hint)

        primitive = extraction.primitive
        contract = CONTRACTS[primitive]

        locator = None
        target = None
        if contract.needs_locator:
            target = extraction.target or TargetRef(text)
            locator = self.resolver.resolve(
                target, hint, debt=debt, journey_id=journey_id, file=source_file, line=step.line or 0
            )
            if locator is None:
                raise MappingError(
                    step.index,
                    f"cannot resolve a locator for target {target.description!r}",
                    step.text,
                    "add a (role=...), (testid=...) or (label=...) hint",
                )
        elif hint and hint.pins_locator:
            raise MappingError(
                step.index,
                f"hint pins a locator but '{primitive.value}' does not use one",
                step.text,
                "remove the locator keys from the hint",
            )

        value = extraction.value
        if primitive is IRPrimitive.WAIT_FOR_STATE and hint and hint.wait:
            value = ValueSpec.literal(hint.wait)
        if contract.needs_value and value is None:
            raise MappingError(step.index, f"'{primitive.value}' needs a value", step.text, 'quote the value, e.g. "x"')

        mapped = IRStep(
            acceptance_criterion_id=step.acceptance_criterion_id,
            primitive=primitive,
            locator=locator,
            value=value,
            source_step_text=step.text,
            index=step.index,
            target=target,
            module_call=extraction.module_call,
            timeout=hint.timeout if hint else None,
            source_line=step.line,
        )
        logger.debug(f"step {step.index}: {primitive.value} {locator.describe() if locator else ''}".rstrip())
        return mapped

    def _from_hint(self, step: JourneyStep, text: str, hint: Optional[StepHint]) -> Optional[Extraction]:
        if hint is None:
            return None
        if hint.module:
            if hint.action and hint.action is not IRPrimitive.CUSTOM_MODULE_CALL:
                raise MappingError(
                    step.index,
                    f"hint action '{hint.action.value}' conflicts with module hint '{hint.module}'",
                    step.text,
                    "drop either the action or the module key",
                )
            module, method = hint.module.split(".", 1)
            quoted = _first_quoted(text)
            return Extraction(
                IRPrimitive.CUSTOM_MODULE_CALL,
                module_call=ModuleCall(module, method, (quoted,) if quoted is not None else ()),
            )
        if hint.action is None:
            return None
        contract = CONTRACTS[hint.action]
        if contract.needs_locator and not hint.pins_locator:
            return None

        quoted = _first_quoted(text)
        target = None
        if contract.needs_locator:
            description = hint.name or hint.label or hint.text or quoted or text
            target = TargetRef(description)
        value = None
        if contract.needs_value:
            if hint.action is IRPrimitive.WAIT_FOR_STATE and hint.wait:
                value = ValueSpec.literal(hint.wait)
            elif quoted is not None:
                value = value_spec(quoted)
        return Extraction(hint.action, target=target, value=value)

    def _infer(self, step: JourneyStep, text: str, hint: Optional[StepHint]) -> Extraction:
        if not (hint and hint.action):
            unsupported = unsupported_action(text)
            if unsupported is not None:
                raise MappingError(step.index, unsupported.reason, step.text, unsupported.suggestion)

        normalized = self.glossary.normalize_spans(text)

        module_match = self.glossary.match_module_method(normalized.text)
        if module_match is not None:
            method, args = module_match
            if hint and hint.action and hint.action is not IRPrimitive.CUSTOM_MODULE_CALL:
                raise MappingError(
                    step.index,
                    f"hint action '{hint.action.value}' conflicts with inferred '{IRPrimitive.CUSTOM_MODULE_CALL.value}'",
                    step.text,
                    "remove the action hint or rephrase the step",
                )
            return Extraction(
                IRPrimitive.CUSTOM_MODULE_CALL,
                module_call=ModuleCall(method.module, method.method, args),
            )

        matches = match_rules(normalized.text, self.rules, normalized)
        if not matches:
            repaired = repair_verb(text)
            if repaired is not None:
                logger.info(f"step {step.index}: reading {text!r} as {repaired!r}")
                normalized = self.glossary.normalize_spans(repaired)
                matches = match_rules(normalized.text, self.rules, normalized)
        if not matches:
            raise MappingError(step.index, "no pattern matches", step.text, NO_MATCH_SUGGESTION)

        if hint and hint.action:
            narrowed = [(r, e) for r, e in matches if e.primitive is hint.action]
            if not narrowed:
                inferred = ", ".join(sorted({e.primitive.value for _, e in matches}))
                raise MappingError(
                    step.index,
                    f"hint action '{hint.action.value}' conflicts with inferred primitive ({inferred})",
                    step.text,
                    "remove the action hint or rephrase the step",
                )
            matches = narrowed

        best_rank = min(rule.rank for rule, _ in matches)
        best = [(r, e) for r, e in matches if r.rank == best_rank]
        primitives: List[IRPrimitive] = []
        for _, extraction in best:
            if extraction.primitive not in primitives:
                primitives.append(extraction.primitive)
        if len(primitives) > 1:
            names = ", ".join(p.value for p in primitives)
            rules = ", ".join(r.name for r, _ in best)
            raise MappingError(
                step.index,
                f"ambiguous match across primitives {names} (rules: {rules})",
                step.text,
                f"add (action={primitives[0].value}) or rephrase the step",
            )
        rule, extraction = best[0]
        logger.debug(f"step {step.index} matched rule {rule.name}")
        return extraction
