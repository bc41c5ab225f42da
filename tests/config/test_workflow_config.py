"""
Tests for workflow configuration loading and the config -> kernel bridges.

Covers:
- Loader (parse_workflow_config) -- YAML dict parsing and validation
- Entrypoint (get_workflow_config) -- packaged defaults, caching, logging
- Bridges (build_workflow_settings) -- kernel WorkflowSettings
"""

from __future__ import annotations

import copy
import dataclasses

import pytest
import yaml

from fundflow_config import DEFAULT_CONFIG_PATH, get_workflow_config
from fundflow_config.bridges import (
    build_default_steps,
    build_role_policy,
    build_workflow_settings,
)
from fundflow_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_step,
    parse_workflow_config,
)
from fundflow_kernel.domain.fund_request import WorkflowAction, WorkflowRole


@pytest.fixture
def raw_config() -> dict:
    return copy.deepcopy(load_yaml_file(DEFAULT_CONFIG_PATH))


# =========================================================================
# 1. Packaged defaults
# =========================================================================


class TestPackagedDefaults:

    def test_default_steps(self, workflow_config):
        assert [(s.order, s.name, s.role) for s in workflow_config.default_steps] == [
            (1, "Soumission", "requester"),
            (2, "Comptabilisation", "accountant"),
            (3, "Validation", "manager"),
            (4, "Paiement", "cashier"),
        ]

    def test_header(self, workflow_config):
        assert workflow_config.config_id == "fundflow-default"
        assert workflow_config.locale == "fr"
        assert len(workflow_config.checksum) == 64

    def test_labels(self, workflow_config):
        assert workflow_config.action_label("reject") == "Rejet"
        assert workflow_config.action_label("reject", locale="en") == "Rejected"
        assert workflow_config.status_label("paid") == "Payée"
        assert workflow_config.role_label("cashier") == "Caissier"

    def test_unknown_locale(self, workflow_config):
        with pytest.raises(KeyError):
            workflow_config.label_set("de")

    def test_config_is_frozen(self, workflow_config):
        with pytest.raises(dataclasses.FrozenInstanceError):
            workflow_config.locale = "en"  # type: ignore[misc]


# =========================================================================
# 2. Loader validation
# =========================================================================


class TestParseStep:

    def test_defaults_allowed_actions(self):
        step = parse_step({"name": "Visa", "order": 4, "role": "auditor"})
        assert step.allowed_actions == ("approve", "reject")

    @pytest.mark.parametrize("data", [
        {"name": "Visa", "order": 0, "role": "auditor"},
        {"name": "Visa", "order": 5, "role": "auditor"},
        {"name": "Visa", "order": "2", "role": "auditor"},
        {"name": "Visa", "order": True, "role": "auditor"},
        {"name": "Visa", "order": 2, "role": "treasurer"},
        {"name": "Visa", "order": 2, "role": "auditor", "allowed_actions": ["archive"]},
        {"name": " ", "order": 2, "role": "auditor"},
    ])
    def test_invalid_step(self, data):
        with pytest.raises(ValueError):
            parse_step(data)

    def test_missing_role(self):
        with pytest.raises(KeyError):
            parse_step({"name": "Visa", "order": 2})


class TestParseWorkflowConfig:

    def test_round_trip_of_packaged_file(self, raw_config, workflow_config):
        assert parse_workflow_config(raw_config) == workflow_config

    def test_duplicate_orders(self, raw_config):
        raw_config["default_steps"][1]["order"] = 1
        with pytest.raises(ValueError, match="duplicate"):
            parse_workflow_config(raw_config)

    def test_locale_without_labels(self, raw_config):
        raw_config["locale"] = "de"
        with pytest.raises(ValueError, match="locale"):
            parse_workflow_config(raw_config)

    def test_locale_missing_an_action_label(self, raw_config):
        del raw_config["labels"]["fr"]["actions"]["resubmit"]
        with pytest.raises(ValueError, match="resubmit"):
            parse_workflow_config(raw_config)

    def test_unknown_label_key(self, raw_config):
        raw_config["labels"]["fr"]["statuses"]["archived"] = "Archivé"
        with pytest.raises(ValueError):
            parse_workflow_config(raw_config)

    def test_unknown_equivalent_role(self, raw_config):
        raw_config["role_policy"]["role_equivalents"]["manager"] = ["ceo"]
        with pytest.raises(ValueError):
            parse_workflow_config(raw_config)

    def test_number_format_needs_seq(self, raw_config):
        raw_config["number_formats"]["fund_request"] = "DF-0001"
        with pytest.raises(ValueError):
            parse_workflow_config(raw_config)

    def test_missing_steps_section(self, raw_config):
        del raw_config["default_steps"]
        with pytest.raises(KeyError):
            parse_workflow_config(raw_config)


class TestChecksum:

    def test_independent_of_key_order(self):
        assert compute_checksum({"a": 1, "b": [1, 2]}) == compute_checksum({"b": [1, 2], "a": 1})

    def test_changes_with_content(self, raw_config):
        before = compute_checksum(raw_config)
        raw_config["version"] = 2
        assert compute_checksum(raw_config) != before


# =========================================================================
# 3. Entrypoint
# =========================================================================


class TestGetWorkflowConfig:

    def test_override_path_cached_and_logged(self, tmp_path, raw_config, captured_logs):
        raw_config["config_id"] = "acme-workflow"
        path = tmp_path / "workflow.yaml"
        path.write_text(yaml.safe_dump(raw_config, allow_unicode=True), encoding="utf-8")

        first = get_workflow_config(path)
        second = get_workflow_config(str(path))

        assert first is second
        assert first.config_id == "acme-workflow"
        loaded = [r for r in captured_logs() if r["message"] == "workflow_config_loaded"]
        assert len(loaded) == 1
        assert loaded[0]["checksum"] == first.checksum

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_workflow_config(tmp_path / "absent.yaml")


# =========================================================================
# 4. Bridges
# =========================================================================


class TestBridges:

    def test_default_steps(self, workflow_config):
        steps = build_default_steps(workflow_config)
        assert [s.responsible_role for s in steps] == [
            WorkflowRole.REQUESTER, WorkflowRole.ACCOUNTANT, WorkflowRole.MANAGER, WorkflowRole.CASHIER,
        ]
        assert steps[3].allowed_actions == (WorkflowAction.PAY, WorkflowAction.REJECT)
        assert all(s.step_id is None for s in steps)

    def test_role_policy(self, workflow_config):
        policy = build_role_policy(workflow_config)
        assert policy.override_roles == frozenset({"admin"})
        assert policy.roles_for("manager") == frozenset({"manager", "director"})
        assert policy.roles_for(WorkflowRole.CASHIER) == frozenset({"cashier"})

    def test_settings_use_configured_locale(self, workflow_config):
        settings = build_workflow_settings(workflow_config)
        assert settings.action_label(WorkflowAction.PAY) == "Paiement effectué"
        assert settings.request_number_format == "DF-{seq:05d}"

    def test_settings_for_other_locale(self, workflow_config):
        settings = build_workflow_settings(workflow_config, locale="en")
        assert settings.action_label("pay") == "Payment made"
