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

"""Public entry points: generate, validate and verify a Journey.

The policy and selector catalog are loaded once, before any stage runs, and
passed to every component. Journeys are re-read from disk on every call.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from opentelemetry import trace

from artk_autogen.codegen.generator import CodeGenerator, GenerationResult
from artk_autogen.core.config import Config
from artk_autogen.core.errors import AutoGenError
from artk_autogen.core.logger import get_logger
from artk_autogen.core.policy import Policy, load_policy
from artk_autogen.heal.log import append_heal_log
from artk_autogen.heal.loop import HealingLoop
from artk_autogen.ir.builder import IRBuilder
from artk_autogen.ir.types import IRJourney
from artk_autogen.journey.parser import load_journey
from artk_autogen.mapping.glossary import GlossaryIndex
from artk_autogen.mapping.step_mapper import StepMapper
from artk_autogen.selectors.catalog import SelectorCatalog
from artk_autogen.selectors.debt import DebtRecorder, merge_debt_report
from artk_autogen.selectors.resolver import SelectorResolver
from artk_autogen.validate.validator import ValidationResult, Validator
from artk_autogen.verify.report import VerificationResult
from artk_autogen.verify.runner import ExecutionHost, PytestHost

logger = get_logger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_CONCURRENCY = 4


@dataclass
class JourneyOutcome:
    """What ``run_many`` reports for one Journey."""

    journey_id: str
    generation: Optional[GenerationResult] = None
    validation: Optional[ValidationResult] = None
    verification: Optional[VerificationResult] = None
    error: Optional[AutoGenError] = None
    stages: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        if self.error is not None:
            return False
        if self.verification is not None:
            return self.verification.passed
        return self.validation is not None and self.validation.passed


class AutoGenPipeline:
    def __init__(
        self,
        cfg: Config,
        policy: Policy,
        catalog: Optional[SelectorCatalog] = None,
        runner: Optional[ExecutionHost] = None,
    ):
        self.cfg = cfg
        self.policy = policy
        self.catalog = catalog if catalog is not None else SelectorCatalog.empty()
        self.glossary = GlossaryIndex(policy.glossary)
        self.resolver = SelectorResolver(self.catalog, self.glossary)
        self.builder = IRBuilder(StepMapper(self.glossary, self.resolver))
        self.generator = CodeGenerator(cfg, policy)
        self.validator = Validator(policy)
        self.runner = runner if runner is not None else PytestHost(cfg, policy)

    @classmethod
    def from_config(cls, cfg: Config, runner: Optional[ExecutionHost] = None) -> "AutoGenPipeline":
        """Load the policy and catalog for one invocation.

        Raises:
            ConfigError: the policy or the catalog is invalid.
        """
        policy = load_policy(cfg)
        catalog = SelectorCatalog.load(cfg.catalog_file)
        return cls(cfg, policy, catalog, runner)

    def build_ir(self, journey_id: str, debt: Optional[DebtRecorder] = None) -> IRJourney:
        journey = load_journey(journey_id, self.cfg.journeys_dir)
        source = None
        if journey.source is not None:
            try:
                source = journey.source.resolve().relative_to(self.cfg.repo_root).as_posix()
            except ValueError:
                source = str(journey.source)
        return self.builder.build(journey, debt=debt, source_file=source)

    # ── Stages ────────────────────────────────────────────────

    def generate(self, journey_id: str) -> GenerationResult:
        """Parse, map and write the Journey's test and module files.

        Raises:
            ParseError, MappingError: before any file is written.
            GenerationError: an edit anchor is missing or corrupted.
        """
        with tracer.start_as_current_span("autogen.generate") as span:
            span.set_attribute("journey.id", journey_id)
            debt = DebtRecorder()
            ir = self.build_ir(journey_id, debt)
            result = self.generator.generate(ir)
            if debt.entries:
                merge_debt_report(self.cfg.debt_file, debt.entries)
                logger.warning(f"{journey_id}: {len(debt.entries)} css fallback(s) recorded as selector debt")
            span.set_attribute("files.changed", len(result.changed_files))
            return result

    def _validate_ir(self, ir: IRJourney, generation: GenerationResult) -> ValidationResult:
        with tracer.start_as_current_span("autogen.validate") as span:
            span.set_attribute("journey.id", ir.journey_id)
            result = self.validator.validate(ir, generation.test_file, generation.module_files)
            self.cfg.save_json(self.cfg.journey_reports_dir(ir.journey_id) / "validation-results.json", result.to_dict())
            span.set_attribute("validation.errors", len(result.errors))
            return result

    def validate(self, journey_id: str) -> ValidationResult:
        """Check the Journey's generated files against the policy."""
        ir = self.build_ir(journey_id)
        return self._validate_ir(ir, self.generator.locate(ir))

    def _run_host(self, generation: GenerationResult) -> VerificationResult:
        with tracer.start_as_current_span("autogen.verify.run") as span:
            span.set_attribute("journey.id", generation.journey_id)
            result = self.runner.run(generation.journey_id, generation.test_file)
            span.set_attribute("verification.status", result.status)
            return result

    def verify(self, journey_id: str, heal: bool = False, max_heal_attempts: Optional[int] = None) -> VerificationResult:
        """Run the Journey's generated test, healing failures when asked.

        Verification is blocked, without running anything, while validation
        reports errors.
        """
        with tracer.start_as_current_span("autogen.verify") as span:
            span.set_attribute("journey.id", journey_id)
            ir = self.build_ir(journey_id)
            generation = self.generator.locate(ir)
            validation = self._validate_ir(ir, generation)
            if not validation.passed:
                logger.warning(f"{journey_id}: verification blocked by {len(validation.errors)} validation error(s)")
                result = VerificationResult(journey_id=journey_id, blocked=True)
                self._save_verification(result)
                return result

            result = self._run_host(generation)
            if not result.passed and heal:
                loop = HealingLoop(
                    self.policy,
                    self.resolver,
                    generate=self.generator.generate,
                    validate=self._validate_ir,
                    verify=self._run_host,
                    max_attempts=max_heal_attempts,
                )
                report = loop.run(ir, generation, result)
                result = report.result
                append_heal_log(self.cfg.journey_reports_dir(journey_id) / "heal-log.json", report.log)
                if report.log.suggestion:
                    logger.warning(f"{journey_id}: {report.log.suggestion}")
            span.set_attribute("verification.status", result.status)
            self._save_verification(result)
            return result

    def _save_verification(self, result: VerificationResult) -> None:
        self.cfg.save_json(self.cfg.journey_reports_dir(result.journey_id) / "verification.json", result.to_dict())

    # ── Several journeys ──────────────────────────────────────

    def run_one(self, journey_id: str, verify: bool = False, heal: bool = False) -> JourneyOutcome:
        """generate -> validate -> [verify -> heal] for one Journey; errors are captured."""
        outcome = JourneyOutcome(journey_id)
        try:
            outcome.generation = self.generate(journey_id)
            outcome.stages.append("generate")
            outcome.validation = self.validate(journey_id)
            outcome.stages.append("validate")
            if verify and outcome.validation.passed:
                outcome.verification = self.verify(journey_id, heal=heal)
                outcome.stages.append("verify")
        except AutoGenError as e:
            logger.error(f"{journey_id}: {e}")
            outcome.error = e
        return outcome

    async def run_many(
        self,
        journey_ids: Sequence[str],
        verify: bool = False,
        heal: bool = False,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> Dict[str, JourneyOutcome]:
        """Run independent pipelines concurrently, at most ``concurrency`` at a time."""
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def one(journey_id: str) -> JourneyOutcome:
            async with semaphore:
                return await asyncio.to_thread(self.run_one, journey_id, verify, heal)

        outcomes = await asyncio.gather(*(one(j) for j in journey_ids))
        return {o.journey_id: o for o in outcomes}
