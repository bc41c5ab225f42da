#!/usr/bin/env python3
"""
Operational commands for the fund request workflow database.

Usage:
    python3 scripts/fundflow_admin.py init-db --db-url sqlite:///fundflow.db
    python3 scripts/fundflow_admin.py seed-steps --org <uuid>
    python3 scripts/fundflow_admin.py show-steps --org <uuid>
"""

import argparse
import os
import sys
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DB_URL = os.environ.get("DATABASE_URL", "sqlite:///fundflow.db")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Fund request workflow administration")
    p.add_argument(
        "--db-url",
        default=DB_URL,
        help=f"Database URL (default: {DB_URL!r}, or DATABASE_URL)",
    )
    p.add_argument(
        "--config",
        default=None,
        help="Workflow YAML file (default: the packaged defaults)",
    )
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all tables")

    seed = sub.add_parser("seed-steps", help="Seed an organization's default workflow steps")
    seed.add_argument("--org", type=UUID, required=True, help="Organization id")

    show = sub.add_parser("show-steps", help="Print an organization's workflow steps")
    show.add_argument("--org", type=UUID, required=True, help="Organization id")

    return p.parse_args(argv)


def _print_steps(steps, config) -> None:
    if not steps:
        print("  (no steps)")
        return
    for step in steps:
        state = "active" if step.is_active else "inactive"
        role = config.role_label(step.responsible_role.value)
        actions = ", ".join(a.value for a in step.allowed_actions)
        print(f"  {step.step_order:>2}  {step.step_name:<20} {role:<22} {state:<8} [{actions}]")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from fundflow_config import get_workflow_config
    from fundflow_config.bridges import build_workflow_settings
    from fundflow_kernel.db.engine import (
        create_tables,
        init_engine_from_url,
        session_scope,
    )
    from fundflow_kernel.services.workflow_step_registry import WorkflowStepRegistry

    config = get_workflow_config(args.config)
    settings = build_workflow_settings(config)
    init_engine_from_url(args.db_url)

    if args.command == "init-db":
        create_tables()
        print(f"  Tables created on {args.db_url}")
        return 0

    with session_scope() as session:
        registry = WorkflowStepRegistry(session, settings)
        if args.command == "seed-steps":
            steps = registry.ensure_default_steps(args.org)
            print(f"  Organization {args.org}: {len(steps)} step(s)")
        else:
            steps = registry.list_steps(args.org)
            if not steps:
                print(f"  Organization {args.org} has no persisted steps; defaults apply:")
                steps = registry.list_active_steps(args.org)
        _print_steps(steps, config)
    return 0


if __name__ == "__main__":
    sys.exit(main())
