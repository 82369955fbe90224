#!/usr/bin/env python3
"""
Seed Workflows
==============

Loads workflow definitions from a YAML file into the database.

Usage:
    python scripts/seed_workflows.py [workflows.yaml]
"""

import asyncio
import sys
from pathlib import Path

from ticketflow.config import settings
from ticketflow.infrastructure.database import close_database, create_tables, init_database
from ticketflow.infrastructure.database.unit_of_work import sqlalchemy_uow_factory
from ticketflow.shared.infrastructure.logging import setup_logging
from ticketflow.workflow.infrastructure.seed import load_workflow_file, seed_workflows


async def main(path: Path) -> None:
    setup_logging(settings.log_level, settings.environment)

    specs = load_workflow_file(path)
    print(f"Loaded {len(specs)} workflows from {path}")

    init_database()
    try:
        await create_tables()
        created = await seed_workflows(sqlalchemy_uow_factory(), specs)
    finally:
        await close_database()

    print(f"Seeded {len(created)} workflows")
    for workflow in created:
        print(f"  {workflow.ticket_type}: {workflow.name} ({len(workflow.transitions)} transitions)")


if __name__ == "__main__":
    default_path = Path(__file__).parent.parent / "workflows.yaml"
    asyncio.run(main(Path(sys.argv[1]) if len(sys.argv) > 1 else default_path))
