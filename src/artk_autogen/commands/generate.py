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

import json
from typing import List

import typer

from artk_autogen.commands.common import build_pipeline, console, reported_errors
from artk_autogen.core.logger import get_logger
from artk_autogen.ir.serialize import journey_to_dict

logger = get_logger("commands.generate")


def generate(
    journey_ids: List[str] = typer.Argument(..., help="Journey ids, e.g. JRN-0001."),
):
    """
    Generate Playwright tests and module locators from Journeys.
    """
    with reported_errors():
        pipeline = build_pipeline()
        for journey_id in journey_ids:
            result = pipeline.generate(journey_id)
            if result.changed:
                console.print(f"[green]✅ {journey_id}: wrote {len(result.changed_files)} file(s)[/green]")
                for path in result.changed_files:
                    console.print(f"   {path}")
            else:
                console.print(f"[green]✅ {journey_id}: up to date[/green]")


def ir(
    journey_id: str = typer.Argument(..., help="Journey id, e.g. JRN-0001."),
):
    """
    Print the intermediate representation of a Journey as JSON.
    """
    with reported_errors():
        pipeline = build_pipeline()
        data = journey_to_dict(pipeline.build_ir(journey_id))
    logger.debug(f"Serialized IR for {journey_id}")
    typer.echo(json.dumps(data, indent=2, sort_keys=True))
