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

from typing import Optional

from artk_autogen.core.logger import get_logger
from artk_autogen.ir.types import IRJourney
from artk_autogen.journey.parser import Journey
from artk_autogen.mapping.step_mapper import StepMapper
from artk_autogen.selectors.debt import DebtRecorder

logger = get_logger(__name__)


class IRBuilder:
    """Assemble an ``IRJourney`` from a parsed Journey, one step at a time."""

    def __init__(self, mapper: StepMapper):
        self.mapper = mapper

    def build(
        self,
        journey: Journey,
        debt: Optional[DebtRecorder] = None,
        source_file: Optional[str] = None,
    ) -> IRJourney:
        """Map every step in order.

        Coverage is not checked here; a criterion without steps is reported
        by the validator.

        Raises:
            MappingError: for the first step that cannot be mapped.
        """
        fm = journey.frontmatter
        source = source_file if source_file is not None else (str(journey.source) if journey.source else "")
        steps = tuple(
            self.mapper.map_step(step, debt=debt, journey_id=journey.id, source_file=source)
            for step in journey.steps
        )
        ir = IRJourney(
            journey_id=journey.id,
            title=fm.title,
            tier=fm.tier,
            scope=fm.scope,
            actor=fm.actor,
            module=journey.feature_module,
            steps=steps,
            acceptance_criteria=tuple(ac.id for ac in journey.acceptance_criteria),
            tags=tuple(fm.tags),
            source_file=source or None,
        )
        logger.info(f"Built IR for {journey.id}: {len(steps)} steps")
        return ir
