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

"""The allow-listed repairs the healing loop may apply.

A fix takes the current IR and the index of the failing step (when known) and
returns a changed IR plus a one-line summary, or ``None`` when it does not
apply. Fixes never touch an assertion's expected value, never remove a step
and never introduce a fixed delay.
"""

from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional

from artk_autogen.core.policy import KNOWN_FIXES
from artk_autogen.ir.types import (
    IRJourney,
    IRPrimitive,
    IRStep,
    LocatorStrategy,
    TargetRef,
    ValueKind,
    ValueSpec,
    ensure_exhaustive,
)
from artk_autogen.selectors.resolver import SelectorResolver

NAVIGATION_WAIT_TEXT = "Wait for the page to finish loading"

# Whether a step's locator may be changed by a selector fix.
LOCATOR_REPAIRABLE: Dict[IRPrimitive, bool] = {
    IRPrimitive.NAVIGATE: False,
    IRPrimitive.CLICK: True,
    IRPrimitive.FILL: True,
    IRPrimitive.SELECT: True,
    IRPrimitive.ASSERT_VISIBLE: True,
    IRPrimitive.ASSERT_TEXT: True,
    IRPrimitive.WAIT_FOR_STATE: False,
    IRPrimitive.CUSTOM_MODULE_CALL: False,
}
ensure_exhaustive(LOCATOR_REPAIRABLE, "healing fixes")


@dataclass(frozen=True)
class FixResult:
    ir: IRJourney
    summary: str
    # Index of the failing step in ``ir`` when the fix moved it.
    moved_to: Optional[int] = None


Fix = Callable[[IRJourney, Optional[int], SelectorResolver], Optional[FixResult]]


def _replace_step(ir: IRJourney, step: IRStep) -> IRJourney:
    return ir.with_steps(step if s.index == step.index else s for s in ir.steps)


def _locator_step(ir: IRJourney, index: Optional[int]) -> Optional[IRStep]:
    step = ir.step(index) if index is not None else None
    if step is None or step.locator is None or not LOCATOR_REPAIRABLE[step.primitive]:
        return None
    return step


def upgrade_locator(ir: IRJourney, index: Optional[int], resolver: SelectorResolver) -> Optional[FixResult]:
    step = _locator_step(ir, index)
    if step is None:
        return None
    target = step.target or TargetRef(step.locator.name or step.locator.value)
    better = resolver.upgrade(target, step.locator)
    if better is None:
        return None
    if step.locator.exact and better.strategy is not LocatorStrategy.TEST_ID and better.strategy is not LocatorStrategy.CSS:
        better = replace(better, exact=True)
    summary = f"step {step.index}: {step.locator.describe()} -> {better.describe()}"
    return FixResult(_replace_step(ir, step.evolve(locator=better)), summary)


def add_exact(ir: IRJourney, index: Optional[int], resolver: SelectorResolver) -> Optional[FixResult]:
    step = _locator_step(ir, index)
    if step is None or step.locator.exact:
        return None
    if step.locator.strategy not in (LocatorStrategy.ROLE, LocatorStrategy.LABEL, LocatorStrategy.TEXT):
        return None
    if step.primitive is IRPrimitive.ASSERT_TEXT:
        # exact=True on an assert-text step would switch the matcher to to_have_text.
        return None
    exact = replace(step.locator, exact=True)
    summary = f"step {step.index}: {step.locator.describe()} -> {exact.describe()}"
    return FixResult(_replace_step(ir, step.evolve(locator=exact)), summary)


def insert_navigation_wait(ir: IRJourney, index: Optional[int], resolver: SelectorResolver) -> Optional[FixResult]:
    failing = ir.step(index) if index is not None else None
    if failing is None:
        return None
    previous = ir.step(failing.index - 1)
    if previous is not None and previous.primitive is IRPrimitive.WAIT_FOR_STATE:
        return None
    wait = IRStep(
        acceptance_criterion_id=failing.acceptance_criterion_id,
        primitive=IRPrimitive.WAIT_FOR_STATE,
        locator=None,
        value=ValueSpec.literal("load"),
        source_step_text=NAVIGATION_WAIT_TEXT,
    )
    steps = []
    for step in ir.steps:
        if step.index == failing.index:
            steps.append(wait)
        steps.append(step)
    summary = f"inserted wait-for-state 'load' before step {failing.index}"
    return FixResult(ir.with_steps(steps), summary, moved_to=failing.index + 1)


def await_async_call(ir: IRJourney, index: Optional[int], resolver: SelectorResolver) -> Optional[FixResult]:
    candidates = [ir.step(index)] if index is not None else list(ir.steps)
    for step in candidates:
        if step is None or step.primitive is not IRPrimitive.CUSTOM_MODULE_CALL:
            continue
        if step.module_call.awaited:
            continue
        call = replace(step.module_call, awaited=True)
        summary = f"step {step.index}: await {call.qualified_name}()"
        return FixResult(_replace_step(ir, step.evolve(module_call=call)), summary)
    return None


def namespace_data(ir: IRJourney, index: Optional[int], resolver: SelectorResolver) -> Optional[FixResult]:
    """Turn literal values typed into fields up to the failing step into run-scoped values."""
    limit = index if index is not None else len(ir.steps)
    changed = []
    steps = []
    for step in ir.steps:
        if (
            step.index <= limit
            and step.primitive is IRPrimitive.FILL
            and step.value is not None
            and step.value.kind is ValueKind.LITERAL
        ):
            step = step.evolve(value=ValueSpec.variable(step.value.value))
            changed.append(str(step.index))
        steps.append(step)
    if not changed:
        return None
    summary = f"namespaced values of step(s) {', '.join(changed)}"
    return FixResult(ir.with_steps(steps), summary)


FIXES: Dict[str, Fix] = {
    "upgrade-locator": upgrade_locator,
    "add-exact": add_exact,
    "insert-navigation-wait": insert_navigation_wait,
    "await-async-call": await_async_call,
    "namespace-data": namespace_data,
}

_missing = {f for names in KNOWN_FIXES.values() for f in names} - set(FIXES)
if _missing:
    raise TypeError(f"healing fixes not implemented: {', '.join(sorted(_missing))}")
