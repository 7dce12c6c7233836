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

"""Render IR steps as async Playwright statements."""

import json
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional

from artk_autogen.ir.types import (
    LOCATOR_PRIMITIVES,
    IRJourney,
    IRPrimitive,
    IRStep,
    LocatorSpec,
    LocatorStrategy,
    ValueKind,
    ValueSpec,
    ensure_exhaustive,
)
from artk_autogen.journey.hints import LOAD_STATES
from artk_autogen.mapping.patterns import TEMPLATE_PLACEHOLDER

STEP_COMMENT = re.compile(r"^\s*# \[(\d+)\] ")


class TemplateError(KeyError):
    pass


def py_str(value: str) -> str:
    """A double-quoted Python string literal."""
    return json.dumps(value, ensure_ascii=False)


def identifier(text: str, fallback: str = "target") -> str:
    name = re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_")[:40].strip("_")
    if not name:
        name = fallback
    if name[0].isdigit():
        name = f"n{name}"
    return name


def journey_slug(journey_id: str) -> str:
    return journey_id.lower().replace("-", "_")


def pytest_marker(tag: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", tag.lower()).strip("_")


def locator_expression(spec: LocatorSpec) -> str:
    exact = ", exact=True" if spec.exact else ""
    if spec.strategy is LocatorStrategy.ROLE:
        args = [py_str(spec.value)]
        if spec.name:
            args.append(f"name={py_str(spec.name)}")
        if spec.exact:
            args.append("exact=True")
        if spec.level is not None:
            args.append(f"level={spec.level}")
        return f"page.get_by_role({', '.join(args)})"
    if spec.strategy is LocatorStrategy.LABEL:
        return f"page.get_by_label({py_str(spec.value)}{exact})"
    if spec.strategy is LocatorStrategy.TEST_ID:
        return f"page.get_by_test_id({py_str(spec.value)})"
    if spec.strategy is LocatorStrategy.TEXT:
        return f"page.get_by_text({py_str(spec.value)}{exact})"
    return f"page.locator({py_str(spec.value)})"


def resolve_template(template: str, variables: Mapping[str, str]) -> str:
    def substitute(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name not in variables:
            raise TemplateError(name)
        return variables[name]

    return TEMPLATE_PLACEHOLDER.sub(substitute, template)


def value_expression(value: ValueSpec, variables: Mapping[str, str]) -> str:
    if value.kind is ValueKind.VARIABLE:
        return f"namespaced({py_str(value.value)})"
    if value.kind is ValueKind.TEMPLATE:
        return py_str(resolve_template(value.value, variables))
    return py_str(value.value)


@dataclass(frozen=True)
class RenderContext:
    """Everything a statement needs besides the step itself."""

    module_alias: str
    factories: Mapping[int, str]
    variables: Mapping[str, str]
    awaited: Mapping[int, bool]

    def locator(self, step: IRStep) -> str:
        return f"{self.module_alias}.{self.factories[step.index]}(page)"


def _timeout(step: IRStep, leading_comma: bool = False) -> str:
    if step.timeout is None:
        return ""
    return f"{', ' if leading_comma else ''}timeout={step.timeout}"


def _navigate(step: IRStep, ctx: RenderContext) -> str:
    return f"await page.goto({value_expression(step.value, ctx.variables)}{_timeout(step, True)})"


def _click(step: IRStep, ctx: RenderContext) -> str:
    return f"await {ctx.locator(step)}.click({_timeout(step)})"


def _fill(step: IRStep, ctx: RenderContext) -> str:
    return f"await {ctx.locator(step)}.fill({value_expression(step.value, ctx.variables)}{_timeout(step, True)})"


def _select(step: IRStep, ctx: RenderContext) -> str:
    return f"await {ctx.locator(step)}.select_option({value_expression(step.value, ctx.variables)}{_timeout(step, True)})"


def _assert_visible(step: IRStep, ctx: RenderContext) -> str:
    return f"await expect({ctx.locator(step)}).to_be_visible({_timeout(step)})"


def _assert_text(step: IRStep, ctx: RenderContext) -> str:
    matcher = "to_have_text" if step.locator and step.locator.exact else "to_contain_text"
    value = value_expression(step.value, ctx.variables)
    return f"await expect({ctx.locator(step)}).{matcher}({value}{_timeout(step, True)})"


def _wait_for_state(step: IRStep, ctx: RenderContext) -> str:
    state = step.value.value
    if state in LOAD_STATES:
        return f"await page.wait_for_load_state({py_str(state)}{_timeout(step, True)})"
    pattern = state if re.match(r"^[a-z]+://", state) or state.startswith("*") else f"**{state}"
    return f"await page.wait_for_url({py_str(pattern)}{_timeout(step, True)})"


def _custom_module_call(step: IRStep, ctx: RenderContext) -> str:
    call = step.module_call
    args = ", ".join(["page"] + [py_str(a) for a in call.args])
    prefix = "await " if ctx.awaited.get(step.index, False) else ""
    return f"{prefix}{call.module}.{call.method}({args})"


STATEMENTS: Dict[IRPrimitive, Callable[[IRStep, RenderContext], str]] = {
    IRPrimitive.NAVIGATE: _navigate,
    IRPrimitive.CLICK: _click,
    IRPrimitive.FILL: _fill,
    IRPrimitive.SELECT: _select,
    IRPrimitive.ASSERT_VISIBLE: _assert_visible,
    IRPrimitive.ASSERT_TEXT: _assert_text,
    IRPrimitive.WAIT_FOR_STATE: _wait_for_state,
    IRPrimitive.CUSTOM_MODULE_CALL: _custom_module_call,
}
ensure_exhaustive(STATEMENTS, "code renderer")


def step_comment(step: IRStep) -> str:
    text = " ".join(step.source_step_text.split())
    return f"# [{step.index}] {text}"


def render_step(step: IRStep, ctx: RenderContext, indent: str = "    ") -> List[str]:
    return [f"{indent}{step_comment(step)}", f"{indent}{STATEMENTS[step.primitive](step, ctx)}"]


@dataclass(frozen=True)
class Factory:
    name: str
    spec: LocatorSpec
    acceptance_criterion_id: str


def plan_factories(ir: IRJourney) -> Dict[int, Factory]:
    """Assign a locator factory to every locator step.

    Steps sharing a locator share a factory; differing locators that would
    share a name get a numeric suffix. Names depend only on the IR.
    """
    prefix = journey_slug(ir.journey_id)
    by_spec: Dict[LocatorSpec, Factory] = {}
    used: Dict[str, LocatorSpec] = {}
    plan: Dict[int, Factory] = {}
    for step in ir.steps:
        if step.primitive not in LOCATOR_PRIMITIVES or step.locator is None:
            continue
        existing = by_spec.get(step.locator)
        if existing is None:
            description = step.target.description if step.target else step.locator.value
            kind = step.target.kind if step.target and step.target.kind else None
            base = f"{prefix}_{identifier(description)}"
            if kind and not base.endswith(identifier(kind)):
                base = f"{base}_{identifier(kind)}"
            name = base
            suffix = 2
            while name in used:
                name = f"{base}_{suffix}"
                suffix += 1
            existing = Factory(name, step.locator, step.acceptance_criterion_id)
            by_spec[step.locator] = existing
            used[name] = step.locator
        plan[step.index] = existing
    return plan


def render_factory(factory: Factory) -> List[str]:
    return [
        f"def {factory.name}(page: Page) -> Locator:",
        f"    return {locator_expression(factory.spec)}",
    ]


def failing_step_index(source: str, line: Optional[int]) -> Optional[int]:
    """Map a 1-based line in a generated test file back to an IR step index."""
    if line is None:
        return None
    lines = source.split("\n")
    for number in range(min(line, len(lines)), 0, -1):
        match = STEP_COMMENT.match(lines[number - 1])
        if match:
            return int(match.group(1))
        if lines[number - 1].lstrip().startswith("# artk:begin"):
            return None
    return None
