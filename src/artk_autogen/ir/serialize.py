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

"""JSON round-tripping of the IR for debugging and caching."""

import json
from typing import Any, Dict, Optional

from artk_autogen.ir.types import (
    IRJourney,
    IRPrimitive,
    IRStep,
    LocatorSpec,
    LocatorStrategy,
    ModuleCall,
    TargetRef,
    ValueKind,
    ValueSpec,
)

IR_SCHEMA_VERSION = 1


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def step_to_dict(step: IRStep) -> Dict[str, Any]:
    locator = step.locator
    return _drop_none({
        "index": step.index,
        "acceptanceCriterionId": step.acceptance_criterion_id,
        "primitive": step.primitive.value,
        "locator": _drop_none({
            "strategy": locator.strategy.value,
            "value": locator.value,
            "name": locator.name,
            "exact": locator.exact,
            "level": locator.level,
        }) if locator else None,
        "value": {"kind": step.value.kind.value, "value": step.value.value} if step.value else None,
        "target": _drop_none({"description": step.target.description, "kind": step.target.kind}) if step.target else None,
        "moduleCall": _drop_none({
            "module": step.module_call.module,
            "method": step.module_call.method,
            "args": list(step.module_call.args),
            "awaited": step.module_call.awaited,
        }) if step.module_call else None,
        "timeout": step.timeout,
        "sourceLine": step.source_line,
        "sourceStepText": step.source_step_text,
    })


def step_from_dict(data: Dict[str, Any]) -> IRStep:
    locator: Optional[LocatorSpec] = None
    if data.get("locator"):
        raw = data["locator"]
        locator = LocatorSpec(
            LocatorStrategy(raw["strategy"]), raw["value"], raw.get("name"), raw.get("exact"), raw.get("level")
        )
    value = ValueSpec(ValueKind(data["value"]["kind"]), data["value"]["value"]) if data.get("value") else None
    target = TargetRef(data["target"]["description"], data["target"].get("kind")) if data.get("target") else None
    module_call = None
    if data.get("moduleCall"):
        raw = data["moduleCall"]
        module_call = ModuleCall(raw["module"], raw["method"], tuple(raw.get("args", ())), raw.get("awaited"))
    return IRStep(
        acceptance_criterion_id=data["acceptanceCriterionId"],
        primitive=IRPrimitive(data["primitive"]),
        locator=locator,
        value=value,
        source_step_text=data["sourceStepText"],
        index=data.get("index", 0),
        target=target,
        module_call=module_call,
        timeout=data.get("timeout"),
        source_line=data.get("sourceLine"),
    )


def journey_to_dict(ir: IRJourney) -> Dict[str, Any]:
    return _drop_none({
        "version": IR_SCHEMA_VERSION,
        "journeyId": ir.journey_id,
        "title": ir.title,
        "tier": ir.tier,
        "scope": ir.scope,
        "actor": ir.actor,
        "module": ir.module,
        "acceptanceCriteria": list(ir.acceptance_criteria),
        "tags": list(ir.tags),
        "sourceFile": ir.source_file,
        "steps": [step_to_dict(s) for s in ir.steps],
    })


def journey_from_dict(data: Dict[str, Any]) -> IRJourney:
    if data.get("version", IR_SCHEMA_VERSION) != IR_SCHEMA_VERSION:
        raise ValueError(f"unsupported IR version {data.get('version')}")
    return IRJourney(
        journey_id=data["journeyId"],
        title=data["title"],
        tier=data["tier"],
        scope=data["scope"],
        actor=data["actor"],
        module=data["module"],
        steps=tuple(step_from_dict(s) for s in data.get("steps", [])),
        acceptance_criteria=tuple(data.get("acceptanceCriteria", [])),
        tags=tuple(data.get("tags", [])),
        source_file=data.get("sourceFile"),
    )


def dumps(ir: IRJourney) -> str:
    return json.dumps(journey_to_dict(ir), indent=2, sort_keys=True)


def loads(text: str) -> IRJourney:
    return journey_from_dict(json.loads(text))
