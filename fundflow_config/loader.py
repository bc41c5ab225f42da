"""
Configuration Loader (``fundflow_config.loader``).

Responsibility
--------------
Loads the workflow YAML file and parses it into the typed, frozen
``fundflow_config.schema`` dataclasses.  Callers go through
``fundflow_config.get_workflow_config()``.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields have no silent defaults.
* Roles and actions must be known to the kernel; default step orders are
  distinct and within 1..LAST_STAGE_ORDER; the configured locale has a
  full action label set.
* ``compute_checksum`` is a deterministic SHA-256 of canonical JSON.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from fundflow_config.schema import DefaultStepDef, LabelSet, WorkflowConfig
from fundflow_kernel.domain.fund_request import (
    FundRequestStatus,
    WorkflowAction,
    WorkflowRole,
)
from fundflow_kernel.domain.workflow import LAST_STAGE_ORDER

_ROLES = frozenset(r.value for r in WorkflowRole)
_ACTIONS = frozenset(a.value for a in WorkflowAction)
_STATUSES = frozenset(s.value for s in FundRequestStatus)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _check_role(role: Any, where: str) -> str:
    if role not in _ROLES:
        raise ValueError(f"{where}: unknown role {role!r}")
    return role


def parse_step(data: dict[str, Any]) -> DefaultStepDef:
    """
    Parse a ``DefaultStepDef`` from a dict.

    Raises:
        KeyError: if ``name``, ``order`` or ``role`` is missing.
        ValueError: on unknown role or action, or an order outside
            1..LAST_STAGE_ORDER.
    """
    name = str(data["name"]).strip()
    if not name:
        raise ValueError("default step name must not be empty")

    order = data["order"]
    if isinstance(order, bool) or not isinstance(order, int) or not 1 <= order <= LAST_STAGE_ORDER:
        raise ValueError(
            f"step '{name}': order must be an integer from 1 to {LAST_STAGE_ORDER}, got {order!r}"
        )

    role = _check_role(data["role"], f"step '{name}'")

    actions = tuple(data.get("allowed_actions") or ("approve", "reject"))
    for action in actions:
        if action not in _ACTIONS:
            raise ValueError(f"step '{name}': unknown action {action!r}")

    return DefaultStepDef(name=name, order=order, role=role, allowed_actions=actions)


def _parse_mapping(data: dict[str, Any] | None, known: frozenset[str], what: str) -> tuple[tuple[str, str], ...]:
    result = []
    for key, label in sorted((data or {}).items()):
        if key not in known:
            raise ValueError(f"unknown {what} {key!r} in labels")
        result.append((key, str(label)))
    return tuple(result)


def parse_labels(locale: str, data: dict[str, Any]) -> LabelSet:
    """Parse the label set of one locale."""
    return LabelSet(
        locale=locale,
        actions=_parse_mapping(data.get("actions"), _ACTIONS, "action"),
        statuses=_parse_mapping(data.get("statuses"), _STATUSES, "status"),
        roles=_parse_mapping(data.get("roles"), _ROLES, "role"),
    )


def parse_workflow_config(data: dict[str, Any]) -> WorkflowConfig:
    """
    Parse a ``WorkflowConfig`` from the YAML root dict.

    Raises:
        KeyError: if a required section is missing.
        ValueError: on any structural inconsistency.
    """
    steps = tuple(parse_step(s) for s in data["default_steps"])
    orders = [s.order for s in steps]
    duplicates = sorted({o for o in orders if orders.count(o) > 1})
    if duplicates:
        raise ValueError(f"duplicate default step orders: {duplicates}")

    labels = tuple(
        parse_labels(locale, section)
        for locale, section in sorted((data.get("labels") or {}).items())
    )

    locale = data.get("locale", "fr")
    configured = [ls for ls in labels if ls.locale == locale]
    if not configured:
        raise ValueError(f"no labels defined for locale '{locale}'")
    missing = sorted(_ACTIONS - {k for k, _ in configured[0].actions})
    if missing:
        raise ValueError(f"locale '{locale}' has no label for actions {missing}")

    policy = data.get("role_policy") or {}
    override_roles = tuple(
        _check_role(r, "override_roles") for r in policy.get("override_roles", ["admin"])
    )
    equivalents = tuple(
        (
            _check_role(role, "role_equivalents"),
            tuple(_check_role(r, f"role_equivalents[{role}]") for r in others),
        )
        for role, others in sorted((policy.get("role_equivalents") or {}).items())
    )

    formats = data.get("number_formats") or {}
    request_format = formats.get("fund_request", "DF-{seq:05d}")
    receipt_format = formats.get("payment_receipt", "RC-{seq:05d}")
    for fmt in (request_format, receipt_format):
        if "{seq" not in fmt:
            raise ValueError(f"number format {fmt!r} must contain a {{seq}} field")

    return WorkflowConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        locale=locale,
        default_steps=steps,
        labels=labels,
        override_roles=override_roles,
        role_equivalents=equivalents,
        request_number_format=request_format,
        receipt_number_format=receipt_format,
        checksum=compute_checksum(data),
    )


def load_workflow_config(path: Path) -> WorkflowConfig:
    """Load and parse a workflow configuration file."""
    return parse_workflow_config(load_yaml_file(path))
