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

"""Pipeline policy: glossary, forbidden patterns, strictness and healing.

The policy is read once per invocation from ``.artk/autogen.yaml``, merged over
the defaults below, validated with pydantic and frozen. Stages receive it as an
argument; nothing here is cached globally.
"""

import copy
import re
from enum import Enum
from typing import Any, Dict, Literal, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from artk_autogen.core.config import Config
from artk_autogen.core.errors import ConfigError
from artk_autogen.core.logger import get_logger

logger = get_logger(__name__)

HEALABLE_CATEGORIES = ("selector", "timing", "navigation", "data")
FAILURE_CATEGORIES = HEALABLE_CATEGORIES + ("auth", "environment")

# Every fix the healing loop knows how to apply, per failure category.
KNOWN_FIXES: Dict[str, Tuple[str, ...]] = {
    "selector": ("upgrade-locator", "add-exact"),
    "navigation": ("insert-navigation-wait",),
    "timing": ("await-async-call",),
    "data": ("namespace-data",),
}


class Strictness(str, Enum):
    LENIENT = "lenient"
    STANDARD = "standard"
    STRICT = "strict"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class ForbiddenPattern(_Frozen):
    id: str
    pattern: str
    message: str
    severity: Literal["error", "warning"] = "error"
    fix_category: Optional[str] = None

    @field_validator("pattern")
    @classmethod
    def _compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid regex {value!r}: {e}")
        return value


class HealingPolicy(_Frozen):
    max_attempts: int = Field(3, ge=0, description="Verify cycles per heal-enabled verify call")
    allowed_fixes: Dict[str, Tuple[str, ...]] = Field(default_factory=dict)

    @field_validator("allowed_fixes")
    @classmethod
    def _known_fixes(cls, value: Dict[str, Tuple[str, ...]]) -> Dict[str, Tuple[str, ...]]:
        for category, fixes in value.items():
            if category not in KNOWN_FIXES:
                raise ValueError(f"category {category!r} has no healing fixes")
            unknown = [f for f in fixes if f not in KNOWN_FIXES[category]]
            if unknown:
                raise ValueError(f"unknown {category} fixes: {', '.join(unknown)}")
        return value


class ModuleMethod(_Frozen):
    phrase: str
    module: str
    method: str


class Glossary(_Frozen):
    synonyms: Dict[str, Tuple[str, ...]] = Field(default_factory=dict)
    module_methods: Tuple[ModuleMethod, ...] = ()
    label_aliases: Dict[str, str] = Field(default_factory=dict)


class ExecutionPolicy(_Frozen):
    command: Tuple[str, ...]
    timeout_seconds: int = Field(600, gt=0)


class Policy(_Frozen):
    strictness: Strictness = Strictness.STANDARD
    forbidden_patterns: Tuple[ForbiddenPattern, ...] = ()
    healing: HealingPolicy = HealingPolicy()
    glossary: Glossary = Glossary()
    template_vars: Dict[str, str] = Field(default_factory=dict)
    execution: ExecutionPolicy
    paths: Dict[str, str] = Field(default_factory=dict)

    def fixes_for(self, category: str) -> Tuple[str, ...]:
        return self.healing.allowed_fixes.get(category, ())


DEFAULT_POLICY: Dict[str, Any] = {
    "strictness": "standard",
    "forbidden_patterns": [
        {
            "id": "WAIT_TIMEOUT",
            "pattern": r"\.wait_for_timeout\(",
            "severity": "error",
            "message": "Unconditional wait; wait for a load state or use a web-first assertion",
            "fix_category": "timing",
        },
        {
            "id": "SLEEP",
            "pattern": r"\b(?:time|asyncio)\.sleep\(",
            "severity": "error",
            "message": "Fixed sleep in test code",
            "fix_category": "timing",
        },
        {
            "id": "FORCE_INTERACTION",
            "pattern": r"\bforce\s*=\s*True\b",
            "severity": "warning",
            "message": "Forced interaction bypasses actionability checks",
            "fix_category": "selector",
        },
        {
            "id": "XPATH_SELECTOR",
            "pattern": r"\.locator\(\s*[\"'](?:xpath=|//)",
            "severity": "warning",
            "message": "XPath selector; prefer role, label or test-id locators",
            "fix_category": "selector",
        },
        {
            "id": "CSS_SELECTOR",
            "pattern": r"\.locator\(\s*[\"'](?!xpath=|//)",
            "severity": "warning",
            "message": "CSS selector fallback; prefer role, label or test-id locators",
            "fix_category": "selector",
        },
        {
            "id": "NTH_SELECTOR",
            "pattern": r":nth-child\(|\.nth\(",
            "severity": "warning",
            "message": "Position-based selector is brittle",
            "fix_category": "selector",
        },
        {
            "id": "HARDCODED_CREDENTIALS",
            "pattern": r"(?i)\b(?:password|passwd|secret|api_key)\s*=\s*[\"'][^\"']+[\"']",
            "severity": "error",
            "message": "Hard-coded credential; read it from the environment",
        },
        {
            "id": "SKIPPED_TEST",
            "pattern": r"pytest\.mark\.(?:skip|only)\b",
            "severity": "warning",
            "message": "Skipped or focused test left in generated code",
        },
    ],
    "healing": {
        "max_attempts": 3,
        "allowed_fixes": {category: list(fixes) for category, fixes in KNOWN_FIXES.items()},
    },
    "glossary": {
        "synonyms": {
            "click": ["press", "presses", "tap", "taps"],
            "enter": ["types", "fill in", "fills in"],
            "navigate to": ["go to", "goes to", "visit", "visits", "browse to", "browses to"],
            "login": ["log in", "logs in", "sign in", "signs in"],
            "logout": ["log out", "logs out", "sign out", "signs out"],
            "visible": ["displayed", "shown"],
        },
        "module_methods": [
            {"phrase": "login", "module": "auth", "method": "login"},
            {"phrase": "logout", "module": "auth", "method": "logout"},
        ],
        "label_aliases": {
            "e-mail": "email",
            "email address": "email",
            "user name": "username",
            "pass": "password",
        },
    },
    "template_vars": {},
    "execution": {
        "command": [
            "{python}", "-m", "pytest", "{tests_dir}",
            "-m", "{marker}",
            "-o", "pythonpath={harness_dir}",
            "--junitxml={report}",
            "-q", "-p", "no:cacheprovider",
            "-W", "ignore::pytest.PytestUnknownMarkWarning",
        ],
        "timeout_seconds": 600,
    },
    "paths": {},
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` into a copy of ``base``; lists are replaced, not appended."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def build_policy(overrides: Optional[Dict[str, Any]] = None) -> Policy:
    """Build a validated policy from the defaults plus ``overrides``."""
    data = _deep_merge(DEFAULT_POLICY, overrides or {})
    try:
        return Policy(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid autogen policy:\n{e}") from e


def load_policy(cfg: Config) -> Policy:
    """Load the project's policy document once for this invocation."""
    overrides: Dict[str, Any] = {}
    if cfg.policy_file.exists():
        try:
            overrides = cfg.load_yaml(cfg.policy_file)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read policy {cfg.policy_file}: {e}") from e
        if not isinstance(overrides, dict):
            raise ConfigError(f"Policy {cfg.policy_file} must be a mapping")
        logger.debug(f"Loaded policy overrides from {cfg.policy_file}")
    else:
        logger.debug("No policy file found; using defaults")
    policy = build_policy(overrides)
    if policy.paths:
        cfg.apply_path_overrides(policy.paths)
    return policy
