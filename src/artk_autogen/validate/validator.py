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

"""Static checks over generated test and module files.

Each check is independent and every check runs, even when an earlier one has
already found errors, so one run reports everything. Rule severities are then
adjusted by the policy's strictness level:

- ``standard`` keeps the rule severity.
- ``strict`` promotes warnings to errors.
- ``lenient`` demotes errors to warnings, except syntax errors and missing
  artifacts, which always block verification.
"""

import ast
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from artk_autogen.codegen.generator import journey_tags
from artk_autogen.codegen.render import STEP_COMMENT, pytest_marker
from artk_autogen.codegen.blocks import BlockDocument
from artk_autogen.core.errors import GenerationError
from artk_autogen.core.logger import get_logger
from artk_autogen.core.policy import Policy, Strictness
from artk_autogen.ir.types import IRJourney, IRPrimitive, ensure_exhaustive

logger = get_logger(__name__)

# Issues that no strictness level can demote.
ALWAYS_BLOCKING = frozenset({"SYNTAX_ERROR", "MISSING_ARTIFACT", "CORRUPT_MARKERS"})

# Page and Locator methods that return awaitables in the async API.
ASYNC_PLAYWRIGHT_METHODS = frozenset({
    "goto", "reload", "go_back", "go_forward", "click", "dblclick", "fill", "type",
    "press", "check", "uncheck", "select_option", "hover", "focus", "set_input_files",
    "wait_for", "wait_for_load_state", "wait_for_url", "wait_for_selector",
    "wait_for_timeout", "inner_text", "text_content", "input_value", "is_visible",
    "screenshot", "evaluate",
    "to_be_visible", "to_be_hidden", "to_have_text", "to_contain_text", "to_have_url",
    "to_have_value", "to_have_title", "to_be_enabled", "to_be_checked",
})

# Whether a primitive's statements are checked for coverage by step comment.
COVERAGE_COUNTED: Dict[IRPrimitive, bool] = {
    IRPrimitive.NAVIGATE: True,
    IRPrimitive.CLICK: True,
    IRPrimitive.FILL: True,
    IRPrimitive.SELECT: True,
    IRPrimitive.ASSERT_VISIBLE: True,
    IRPrimitive.ASSERT_TEXT: True,
    IRPrimitive.WAIT_FOR_STATE: True,
    IRPrimitive.CUSTOM_MODULE_CALL: True,
}
ensure_exhaustive(COVERAGE_COUNTED, "static validator")


@dataclass
class ValidationIssue:
    """One finding. ``line`` is 1-based; ``None`` means the whole file."""

    rule: str
    severity: str
    message: str
    file: str
    line: Optional[int] = None
    fix_category: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class ValidationResult:
    journey_id: str
    strictness: str
    issues: List[ValidationIssue] = field(default_factory=list)
    checked_files: List[str] = field(default_factory=list)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def status(self) -> str:
        return "failed" if self.errors else "passed"

    @property
    def passed(self) -> bool:
        return self.status == "passed"

    def to_dict(self) -> Dict:
        return {
            "journey_id": self.journey_id,
            "status": self.status,
            "strictness": self.strictness,
            "checked_files": list(self.checked_files),
            "issues": [i.to_dict() for i in self.issues],
            "validated_at": datetime.now(timezone.utc).isoformat(),
        }


def apply_strictness(issue: ValidationIssue, strictness: Strictness) -> ValidationIssue:
    if strictness is Strictness.STRICT and issue.severity == "warning":
        issue.severity = "error"
    elif strictness is Strictness.LENIENT and issue.severity == "error" and issue.rule not in ALWAYS_BLOCKING:
        issue.severity = "warning"
    return issue


# ── Individual checks ────────────────────────────────────────

def check_forbidden_patterns(path: Path, source: str, policy: Policy) -> List[ValidationIssue]:
    issues = []
    compiled = [(rule, re.compile(rule.pattern)) for rule in policy.forbidden_patterns]
    for number, line in enumerate(source.split("\n"), start=1):
        if line.lstrip().startswith("#"):
            continue
        for rule, regex in compiled:
            if regex.search(line):
                issues.append(ValidationIssue(
                    rule=rule.id,
                    severity=rule.severity,
                    message=rule.message,
                    file=str(path),
                    line=number,
                    fix_category=rule.fix_category,
                ))
    return issues


def _module_assignment(tree: ast.Module, name: str) -> Optional[ast.AST]:
    for node in tree.body:
        if isinstance(node, ast.Assign) and any(isinstance(t, ast.Name) and t.id == name for t in node.targets):
            return node.value
    return None


def check_required_tags(path: Path, tree: ast.Module, ir: IRJourney) -> List[ValidationIssue]:
    """The ``TAGS`` list and the ``pytestmark`` selection markers must both be present."""
    issues = []
    required = journey_tags(ir)[:6]

    tags_node = _module_assignment(tree, "TAGS")
    declared: List[str] = []
    if isinstance(tags_node, (ast.List, ast.Tuple)):
        declared = [e.value for e in tags_node.elts if isinstance(e, ast.Constant) and isinstance(e.value, str)]
    for tag in required:
        if tag not in declared:
            issues.append(ValidationIssue(
                rule="MISSING_TAG",
                severity="error",
                message=f"Required tag {tag} is missing from TAGS",
                file=str(path),
            ))

    marks_node = _module_assignment(tree, "pytestmark")
    marks = set()
    if marks_node is not None:
        for node in ast.walk(marks_node):
            if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Attribute) and node.value.attr == "mark":
                marks.add(node.attr)
    selection = pytest_marker(ir.journey_id)
    if selection not in marks:
        issues.append(ValidationIssue(
            rule="MISSING_TAG",
            severity="error",
            message=f"pytestmark lacks the selection marker {selection!r}",
            file=str(path),
        ))
    if "asyncio" not in marks:
        issues.append(ValidationIssue(
            rule="MISSING_TAG",
            severity="error",
            message="pytestmark lacks pytest.mark.asyncio; async tests would not run",
            file=str(path),
            fix_category="timing",
        ))
    return issues


def check_coverage(path: Path, source: str, ir: IRJourney) -> List[ValidationIssue]:
    """Every acceptance criterion needs a mapped step and a generated statement."""
    issues = []
    try:
        doc = BlockDocument.parse(source, path)
    except GenerationError as e:
        return [ValidationIssue(rule="CORRUPT_MARKERS", severity="error", message=e.reason, file=str(path))]

    for ac in ir.acceptance_criteria:
        steps = [s for s in ir.steps_for(ac) if COVERAGE_COUNTED[s.primitive]]
        if not steps:
            issues.append(ValidationIssue(
                rule="AC_NOT_COVERED",
                severity="error",
                message=f"{ac} has no mapped steps",
                file=str(path),
            ))
            continue
        if not doc.has(ac):
            issues.append(ValidationIssue(
                rule="AC_NOT_COVERED",
                severity="error",
                message=f"{ac} has no generated block",
                file=str(path),
            ))
            continue
        if not any(STEP_COMMENT.match(line) for line in doc.body(ac)):
            issues.append(ValidationIssue(
                rule="AC_NOT_COVERED",
                severity="error",
                message=f"{ac} block contains no generated steps",
                file=str(path),
            ))
    return issues


def _call_name(call: ast.Call) -> Optional[str]:
    if isinstance(call.func, ast.Attribute):
        return call.func.attr
    return None


def _awaited_calls(tree: ast.AST) -> set:
    return {id(node.value) for node in ast.walk(tree) if isinstance(node, ast.Await)}


def lint(path: Path, tree: ast.Module, source: str) -> List[ValidationIssue]:
    issues = []
    awaited = _awaited_calls(tree)

    for func in ast.walk(tree):
        if not isinstance(func, ast.AsyncFunctionDef):
            continue
        for node in ast.walk(func):
            if isinstance(node, ast.Call) and _call_name(node) in ASYNC_PLAYWRIGHT_METHODS and id(node) not in awaited:
                issues.append(ValidationIssue(
                    rule="MISSING_AWAIT",
                    severity="error",
                    message=f"Playwright call .{_call_name(node)}() is never awaited",
                    file=str(path),
                    line=node.lineno,
                    fix_category="timing",
                ))

    seen: Dict[str, int] = {}
    for node in tree.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)) and node.name.startswith("test_"):
            if node.name in seen:
                issues.append(ValidationIssue(
                    rule="DUPLICATE_TEST",
                    severity="error",
                    message=f"{node.name} is also defined on line {seen[node.name]}",
                    file=str(path),
                    line=node.lineno,
                ))
            else:
                seen[node.name] = node.lineno

    for node in tree.body:
        if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            continue
        for inner in ast.walk(node):
            if (
                isinstance(inner, ast.Raise)
                and isinstance(inner.exc, ast.Call)
                and isinstance(inner.exc.func, ast.Name)
                and inner.exc.func.id == "NotImplementedError"
            ):
                issues.append(ValidationIssue(
                    rule="MODULE_STUB",
                    severity="warning",
                    message=f"{node.name}() is a scaffold and raises NotImplementedError",
                    file=str(path),
                    line=node.lineno,
                ))
                break
    return issues


class Validator:
    def __init__(self, policy: Policy):
        self.policy = policy

    def validate(self, ir: IRJourney, test_file: Path, module_files: Sequence[Path] = ()) -> ValidationResult:
        """Run every check over the journey's generated files."""
        result = ValidationResult(journey_id=ir.journey_id, strictness=self.policy.strictness.value)
        for path in [test_file, *module_files]:
            result.issues.extend(self._check_file(path, ir, is_test=path == test_file))
            result.checked_files.append(str(path))
        result.issues = [apply_strictness(i, self.policy.strictness) for i in result.issues]

        level = logger.info if result.passed else logger.warning
        level(f"{ir.journey_id}: validation {result.status} ({len(result.errors)} errors, {len(result.warnings)} warnings)")
        return result

    def _check_file(self, path: Path, ir: IRJourney, is_test: bool) -> List[ValidationIssue]:
        if not path.exists():
            return [ValidationIssue(
                rule="MISSING_ARTIFACT",
                severity="error",
                message="Generated file does not exist; run generate first",
                file=str(path),
            )]
        source = path.read_text(encoding="utf-8")
        issues = check_forbidden_patterns(path, source, self.policy)

        try:
            tree = ast.parse(source, filename=str(path))
        except SyntaxError as e:
            issues.append(ValidationIssue(
                rule="SYNTAX_ERROR",
                severity="error",
                message=f"{e.msg}",
                file=str(path),
                line=e.lineno,
            ))
            tree = None

        checks: List[Callable[[], List[ValidationIssue]]] = []
        if tree is not None:
            checks.append(lambda: lint(path, tree, source))
            if is_test:
                checks.append(lambda: check_required_tags(path, tree, ir))
        if is_test:
            checks.append(lambda: check_coverage(path, source, ir))
        for check in checks:
            issues.extend(check())
        return issues
