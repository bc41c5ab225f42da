"""
Workflow configuration schema.

The human-authored, reviewable source artifact for the fund request
workflow.  YAML is parsed into these frozen types by the loader;
``bridges`` turns them into the kernel's ``WorkflowSettings``.
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DefaultStepDef:
    """A step seeded for every new organization."""

    name: str
    order: int
    role: str
    allowed_actions: tuple[str, ...] = ("approve", "reject")


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LabelSet:
    """Display labels for one locale."""

    locale: str
    actions: tuple[tuple[str, str], ...] = ()
    statuses: tuple[tuple[str, str], ...] = ()
    roles: tuple[tuple[str, str], ...] = ()


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkflowConfig:
    """Root of the workflow configuration."""

    config_id: str
    version: int
    locale: str
    default_steps: tuple[DefaultStepDef, ...]
    labels: tuple[LabelSet, ...]
    override_roles: tuple[str, ...] = ("admin",)
    role_equivalents: tuple[tuple[str, tuple[str, ...]], ...] = ()
    request_number_format: str = "DF-{seq:05d}"
    receipt_number_format: str = "RC-{seq:05d}"
    checksum: str = ""

    def label_set(self, locale: str | None = None) -> LabelSet:
        wanted = locale or self.locale
        for label_set in self.labels:
            if label_set.locale == wanted:
                return label_set
        raise KeyError(f"No labels for locale '{wanted}'")

    def action_label(self, action: str, locale: str | None = None) -> str:
        return dict(self.label_set(locale).actions).get(action, action)

    def status_label(self, status: str, locale: str | None = None) -> str:
        return dict(self.label_set(locale).statuses).get(status, status)

    def role_label(self, role: str, locale: str | None = None) -> str:
        return dict(self.label_set(locale).roles).get(role, role)
