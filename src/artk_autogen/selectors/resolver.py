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

"""Resolve a step target into a LocatorSpec.

Strategies are tried in the fixed order role > label > test-id > text > css;
the first one with a resolvable value wins. A hint that pins a locator is used
as written. Every css result is recorded as selector debt.
"""

import re
from typing import Dict, List, Optional

from artk_autogen.ir.types import (
    STRATEGY_PRIORITY,
    LocatorSpec,
    LocatorStrategy,
    TargetRef,
    strategy_rank,
)
from artk_autogen.journey.hints import StepHint
from artk_autogen.mapping.glossary import GlossaryIndex
from artk_autogen.selectors.catalog import SelectorCatalog
from artk_autogen.selectors.debt import DebtEntry, DebtRecorder

# Element words used in step text and the ARIA role they imply.
KIND_ROLES: Dict[str, Optional[str]] = {
    "button": "button",
    "link": "link",
    "tab": "tab",
    "menu item": "menuitem",
    "menuitem": "menuitem",
    "checkbox": "checkbox",
    "radio": "radio",
    "radio button": "radio",
    "option": "option",
    "heading": "heading",
    "header": "heading",
    "dialog": "dialog",
    "modal": "dialog",
    "alert": "alert",
    "field": "textbox",
    "input": "textbox",
    "textbox": "textbox",
    "text box": "textbox",
    "box": "textbox",
    "textarea": "textbox",
    "search box": "searchbox",
    "dropdown": "combobox",
    "select": "combobox",
    "combobox": "combobox",
    "list": "listbox",
    "table": "table",
    "form": "form",
    "switch": "switch",
    "image": "img",
    "icon": None,
    "message": None,
    "text": None,
}

TEST_ID_SELECTOR = re.compile(r"""^\[data-test(?:id|-id)=["']?([^"'\]]+)["']?\]$""")
CSS_LIKE = re.compile(r"^(?:[.#\[]|[a-z][\w-]*[.#\[:]|.*\s>\s)")


def looks_like_css(text: str) -> bool:
    return bool(CSS_LIKE.match(text.strip())) and " " not in text.strip().replace(" > ", ">")


class SelectorResolver:
    def __init__(self, catalog: SelectorCatalog, glossary: GlossaryIndex):
        self.catalog = catalog
        self.glossary = glossary

    def _role_for(self, target: TargetRef) -> Optional[str]:
        if not target.kind:
            return None
        return KIND_ROLES.get(target.kind.lower())

    def candidates(self, target: TargetRef, hint: Optional[StepHint] = None) -> List[LocatorSpec]:
        """Every resolvable locator for ``target``, highest priority first."""
        description = target.description.strip()
        lookup_key = self.glossary.label_alias(description)
        entry = self.catalog.lookup(lookup_key)
        css_target = looks_like_css(description)
        exact = hint.exact if hint else None
        level = hint.level if hint else None
        found: Dict[LocatorStrategy, LocatorSpec] = {}

        # role
        role_name = (hint.name if hint and hint.name else None) or description
        if hint and hint.role:
            found[LocatorStrategy.ROLE] = LocatorSpec(LocatorStrategy.ROLE, hint.role, role_name, exact, level)
        elif entry and entry.role:
            found[LocatorStrategy.ROLE] = LocatorSpec(
                LocatorStrategy.ROLE, entry.role, entry.name or description, exact, level
            )
        elif not css_target and description and self._role_for(target):
            found[LocatorStrategy.ROLE] = LocatorSpec(
                LocatorStrategy.ROLE, self._role_for(target), description, exact, level
            )

        # label
        label = (hint.label if hint else None) or (entry.label if entry else None)
        if label:
            found[LocatorStrategy.LABEL] = LocatorSpec(LocatorStrategy.LABEL, label, exact=exact)

        # test-id
        test_id = hint.testid if hint and hint.testid else None
        if not test_id:
            embedded = TEST_ID_SELECTOR.match(description)
            if embedded:
                test_id = embedded.group(1)
            elif entry and entry.testid:
                test_id = entry.testid
            elif not css_target:
                test_id = self.catalog.find_test_id(lookup_key, target.kind)
        if test_id:
            found[LocatorStrategy.TEST_ID] = LocatorSpec(LocatorStrategy.TEST_ID, test_id)

        # text
        text = (hint.text if hint else None) or (entry.text if entry else None)
        if not text and description and not css_target:
            text = description
        if text:
            found[LocatorStrategy.TEXT] = LocatorSpec(LocatorStrategy.TEXT, text, exact=exact)

        # css
        css = (hint.css if hint else None) or (entry.css if entry else None)
        if not css and css_target and LocatorStrategy.TEST_ID not in found:
            css = description
        if css:
            found[LocatorStrategy.CSS] = LocatorSpec(LocatorStrategy.CSS, css)

        return [found[s] for s in STRATEGY_PRIORITY if s in found]

    def _pinned(self, hint: StepHint, options: List[LocatorSpec]) -> Optional[LocatorSpec]:
        pinned = {
            LocatorStrategy.ROLE: hint.role,
            LocatorStrategy.LABEL: hint.label,
            LocatorStrategy.TEST_ID: hint.testid,
            LocatorStrategy.TEXT: hint.text,
            LocatorStrategy.CSS: hint.css,
        }
        for spec in options:
            if pinned[spec.strategy]:
                return spec
        return None

    def resolve(
        self,
        target: TargetRef,
        hint: Optional[StepHint] = None,
        debt: Optional[DebtRecorder] = None,
        journey_id: str = "",
        file: str = "",
        line: int = 0,
    ) -> Optional[LocatorSpec]:
        options = self.candidates(target, hint)
        if not options:
            return None
        spec = self._pinned(hint, options) if hint and hint.pins_locator else None
        if spec is None:
            spec = options[0]
        if spec.strategy is LocatorStrategy.CSS and debt is not None:
            debt.record(DebtEntry(target.description, spec.value, file, line, journey_id))
        return spec

    def upgrade(self, target: TargetRef, current: LocatorSpec) -> Optional[LocatorSpec]:
        """Next resolvable strategy one notch above ``current``, if any."""
        current_rank = strategy_rank(current.strategy)
        better = [
            spec for spec in self.candidates(target)
            if strategy_rank(spec.strategy) < current_rank
        ]
        if not better:
            return None
        return better[-1]
