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

"""Write an IRJourney into its test file, feature module and registry.

Every file is edited through ``BlockDocument`` under a per-file lock and is
written only when its rendered text differs, so regenerating an unchanged
Journey touches nothing.
"""

import ast
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from artk_autogen.codegen.blocks import BlockDocument
from artk_autogen.codegen.registry import ModuleRegistry
from artk_autogen.codegen.render import (
    Factory,
    RenderContext,
    TemplateError,
    journey_slug,
    plan_factories,
    py_str,
    pytest_marker,
    render_factory,
    render_step,
)
from artk_autogen.core.config import Config
from artk_autogen.core.errors import GenerationError
from artk_autogen.core.locks import file_lock
from artk_autogen.core.logger import get_logger
from artk_autogen.core.policy import Policy
from artk_autogen.ir.types import IRJourney, IRPrimitive

logger = get_logger(__name__)

TEST_INDENT = "    "
FIXED_TEST_BLOCKS = ("imports", "tags", "runtime")

TEST_SKELETON = '''"""{journey_id}: {title}

Generated from {source}. Code between artk markers is regenerated; edit
outside them.
"""
# artk:begin imports
# artk:end imports

# artk:begin tags
# artk:end tags

# artk:begin runtime
# artk:end runtime


async def {function}(page: Page) -> None:
    """{title}"""
{criteria}'''

MODULE_SKELETON = '''"""Feature module: {module}.

Locator factories between artk markers are regenerated from Journeys.
Functions outside the markers are hand-written and kept as they are.
"""
# artk:begin imports
# artk:end imports
'''

MODULE_IMPORTS = ["from playwright.async_api import Locator, Page"]

RUNTIME_BLOCK = [
    'RUN_ID = os.environ.get("ARTK_RUN_ID") or uuid.uuid4().hex[:8]',
    "",
    "",
    "def namespaced(value: str) -> str:",
    '    """Suffix data created by this run so repeated runs do not collide."""',
    '    return f"{value}-{RUN_ID}"',
]


@dataclass
class GenerationResult:
    journey_id: str
    test_file: Path
    module_files: List[Path]
    registry_file: Path
    ir: IRJourney
    changed_files: List[Path] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changed_files)

    def to_dict(self) -> Dict:
        return {
            "journey_id": self.journey_id,
            "test_file": str(self.test_file),
            "module_files": [str(p) for p in self.module_files],
            "registry_file": str(self.registry_file),
            "changed_files": [str(p) for p in self.changed_files],
        }


def journey_tags(ir: IRJourney) -> List[str]:
    tags = [
        "@artk",
        "@journey",
        f"@{ir.journey_id}",
        f"@tier-{ir.tier}",
        f"@scope-{ir.scope}",
        f"@actor-{ir.actor}",
    ]
    for tag in ir.tags:
        tag = tag if tag.startswith("@") else f"@{tag}"
        if tag not in tags:
            tags.append(tag)
    return tags


def _write_if_changed(path: Path, text: str) -> bool:
    if path.exists() and path.read_text(encoding="utf-8") == text:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return True


def _defined_functions(source: str, path: Path) -> Dict[str, bool]:
    """Top-level function names mapped to whether they are ``async``."""
    try:
        tree = ast.parse(source, filename=str(path))
    except SyntaxError as e:
        raise GenerationError(path, f"module is not valid Python (line {e.lineno}: {e.msg})") from e
    found = {}
    for node in tree.body:
        if isinstance(node, ast.AsyncFunctionDef):
            found[node.name] = True
        elif isinstance(node, ast.FunctionDef):
            found[node.name] = False
    return found


class CodeGenerator:
    def __init__(self, cfg: Config, policy: Policy):
        self.cfg = cfg
        self.policy = policy
        self.registry = ModuleRegistry(cfg.registry_file, cfg.harness_dir)

    def test_path(self, ir: IRJourney) -> Path:
        scope_dir = re.sub(r"[^a-z0-9_]+", "_", ir.scope.lower()).strip("_") or "journeys"
        return self.cfg.tests_dir / scope_dir / f"test_{journey_slug(ir.journey_id)}.py"

    def module_path(self, module: str) -> Path:
        return self.cfg.modules_dir / f"{module}.py"

    def locate(self, ir: IRJourney) -> GenerationResult:
        """Where ``ir``'s artifacts live, without writing anything."""
        modules = sorted({ir.module} | {
            s.module_call.module for s in ir.steps if s.primitive is IRPrimitive.CUSTOM_MODULE_CALL
        })
        return GenerationResult(
            journey_id=ir.journey_id,
            test_file=self.test_path(ir),
            module_files=[self.module_path(m) for m in modules],
            registry_file=self.cfg.registry_file,
            ir=ir,
        )

    def generate(self, ir: IRJourney) -> GenerationResult:
        """Create or update the journey's artifacts.

        Raises:
            GenerationError: a required anchor is missing or corrupted, a
                template placeholder has no value, or an edit would produce
                invalid Python.
        """
        factories = plan_factories(ir)
        calls: Dict[str, Set[str]] = {}
        for step in ir.steps:
            if step.primitive is IRPrimitive.CUSTOM_MODULE_CALL:
                calls.setdefault(step.module_call.module, set()).add(step.module_call.method)

        changed: List[Path] = []
        package_init = self.cfg.modules_dir / "__init__.py"
        if not package_init.exists():
            _write_if_changed(package_init, '"""Feature modules used by generated journey tests."""\n')
            changed.append(package_init)

        modules = sorted({ir.module} | set(calls))
        async_functions: Dict[str, Dict[str, bool]] = {}
        for module in modules:
            path = self.module_path(module)
            own_factories = factories if module == ir.module else {}
            functions, wrote = self._update_module(path, module, ir, own_factories, sorted(calls.get(module, ())))
            async_functions[module] = functions
            if wrote:
                changed.append(path)

        test_path = self.test_path(ir)
        if self._update_test(test_path, ir, factories, async_functions, modules):
            changed.append(test_path)

        if self.registry.record(ir.journey_id, {m: async_functions[m] for m in modules}, {m: self.module_path(m) for m in modules}):
            changed.append(self.cfg.registry_file)

        if changed:
            logger.info(f"{ir.journey_id}: updated {', '.join(str(p) for p in changed)}")
        else:
            logger.info(f"{ir.journey_id}: generated artifacts already up to date")
        return GenerationResult(
            journey_id=ir.journey_id,
            test_file=test_path,
            module_files=[self.module_path(m) for m in modules],
            registry_file=self.cfg.registry_file,
            ir=ir,
            changed_files=changed,
        )

    # ── Module file ───────────────────────────────────────────

    def _update_module(
        self,
        path: Path,
        module: str,
        ir: IRJourney,
        factories: Dict[int, Factory],
        called: List[str],
    ) -> Tuple[Dict[str, bool], bool]:
        with file_lock(path):
            existing = path.read_text(encoding="utf-8") if path.exists() else None
            doc = BlockDocument.parse(existing if existing is not None else MODULE_SKELETON.format(module=module), path)
            if doc.has("imports"):
                doc.replace("imports", MODULE_IMPORTS)
            elif factories:
                raise GenerationError(path, "module file lost its generated imports block", "imports")

            by_criterion: Dict[str, List[Factory]] = {}
            seen: Set[str] = set()
            for index in sorted(factories):
                factory = factories[index]
                if factory.name in seen:
                    continue
                seen.add(factory.name)
                by_criterion.setdefault(factory.acceptance_criterion_id, []).append(factory)

            prefix = f"{ir.journey_id}/"
            wanted = [f"{prefix}{ac}" for ac in ir.acceptance_criteria if ac in by_criterion]
            for key in doc.keys():
                if key.startswith(prefix) and key not in wanted:
                    logger.debug(f"{path.name}: removing stale block {key}")
                    doc.remove(key)

            previous: Optional[str] = None
            for key in wanted:
                body: List[str] = []
                for factory in by_criterion[key[len(prefix):]]:
                    if body:
                        body.extend(["", ""])
                    body.extend(render_factory(factory))
                if doc.has(key):
                    doc.replace(key, body)
                elif previous is not None:
                    doc.insert_after(previous, key, "", body, separator=["", ""])
                else:
                    doc.append(key, "", body, separator=["", ""])
                previous = key

            text = doc.validated()
            functions = _defined_functions(text, path)
            missing = [name for name in called if name not in functions and not self._imports_name(text, path, name)]
            if missing:
                text = text.rstrip("\n") + "\n" + "".join(self._scaffold(module, name) for name in missing)
                functions = _defined_functions(text, path)
                logger.warning(f"{path.name}: scaffolded {', '.join(missing)}; implement before running")
            return functions, _write_if_changed(path, text)

    def _imports_name(self, source: str, path: Path, name: str) -> bool:
        tree = ast.parse(source, filename=str(path))
        for node in tree.body:
            if isinstance(node, (ast.Import, ast.ImportFrom)):
                if any((alias.asname or alias.name.split(".")[-1]) == name for alias in node.names):
                    return True
        return False

    def _scaffold(self, module: str, name: str) -> str:
        return (
            "\n\n"
            f'async def {name}(page: "Page", *args: str) -> None:\n'
            f'    """Hand-written step {module}.{name}."""\n'
            f"    raise NotImplementedError({py_str(f'{module}.{name}')})\n"
        )

    # ── Test file ─────────────────────────────────────────────

    def _update_test(
        self,
        path: Path,
        ir: IRJourney,
        factories: Dict[int, Factory],
        async_functions: Dict[str, Dict[str, bool]],
        modules: List[str],
    ) -> bool:
        awaited: Dict[int, bool] = {}
        for step in ir.steps:
            if step.primitive is IRPrimitive.CUSTOM_MODULE_CALL:
                call = step.module_call
                if call.awaited is not None:
                    awaited[step.index] = call.awaited
                else:
                    awaited[step.index] = async_functions.get(call.module, {}).get(call.method, False)

        ctx = RenderContext(
            module_alias=ir.module,
            factories={i: f.name for i, f in factories.items()},
            variables=self.policy.template_vars,
            awaited=awaited,
        )

        with file_lock(path):
            if path.exists():
                doc = BlockDocument.parse(path.read_text(encoding="utf-8"), path)
            else:
                doc = BlockDocument.parse(self._test_skeleton(ir), path)

            for key in FIXED_TEST_BLOCKS:
                if not doc.has(key):
                    raise GenerationError(path, "test file lost a generated block", key)
            doc.replace("imports", self._imports(modules))
            doc.replace("tags", self._tags(ir))
            doc.replace("runtime", RUNTIME_BLOCK)

            existing_criteria = [k for k in doc.keys() if k.startswith("AC-")]
            if not existing_criteria:
                raise GenerationError(path, "no acceptance-criterion anchors left in the test function", "AC-*")
            for key in existing_criteria:
                if key not in ir.acceptance_criteria:
                    logger.debug(f"{path.name}: removing stale block {key}")
                    doc.remove(key)

            previous: Optional[str] = None
            for ac in ir.acceptance_criteria:
                body = self._criterion_body(ir, ac, ctx, path)
                if doc.has(ac):
                    doc.replace(ac, body)
                elif previous is not None:
                    doc.insert_after(previous, ac, TEST_INDENT, body)
                else:
                    first = [k for k in doc.keys() if k.startswith("AC-")][0]
                    doc.insert_before(first, ac, TEST_INDENT, body)
                previous = ac

            return _write_if_changed(path, doc.validated())

    def _criterion_body(self, ir: IRJourney, ac: str, ctx: RenderContext, path: Path) -> List[str]:
        steps = ir.steps_for(ac)
        if not steps:
            return [f"{TEST_INDENT}pass"]
        body: List[str] = []
        for step in steps:
            try:
                body.extend(render_step(step, ctx, TEST_INDENT))
            except TemplateError as e:
                raise GenerationError(path, f"step {step.index}: no value for template placeholder {e.args[0]!r}") from e
        return body

    def _test_skeleton(self, ir: IRJourney) -> str:
        criteria = "\n".join(
            f"{TEST_INDENT}# artk:begin {ac}\n{TEST_INDENT}# artk:end {ac}" for ac in ir.acceptance_criteria
        )
        return TEST_SKELETON.format(
            journey_id=ir.journey_id,
            title=ir.title.replace('"""', "'''"),
            source=ir.source_file or "a journey",
            function=f"test_{journey_slug(ir.journey_id)}",
            criteria=criteria + "\n",
        )

    def _imports(self, modules: List[str]) -> List[str]:
        return [
            "import os",
            "import uuid",
            "",
            "import pytest",
            "from playwright.async_api import Page, expect",
            "",
            f"from modules import {', '.join(modules)}",
        ]

    def _tags(self, ir: IRJourney) -> List[str]:
        tags = journey_tags(ir)
        markers = ["asyncio"] + [pytest_marker(t) for t in tags]
        lines = [f"TAGS = [{', '.join(py_str(t) for t in tags)}]", "", "pytestmark = ["]
        lines.extend(f"    pytest.mark.{m}," for m in markers)
        lines.append("]")
        return lines
