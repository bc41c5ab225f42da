"""
fundflow_config -- single public entrypoint for workflow configuration.

Responsibility:
    ``get_workflow_config()`` is the only way to obtain the workflow
    configuration at runtime.  No other component reads the YAML files.

Architecture position:
    Configuration -- sits above ``fundflow_kernel``.  The kernel MUST NEVER
    import from ``fundflow_config``; ``bridges`` translates the loaded
    configuration into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` / ``KeyError`` -- structural validation failures.

Audit relevance:
    Every load emits a ``workflow_config_loaded`` log entry with the
    config_id, version and checksum, tying each history entry back to the
    configuration that labelled it.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from fundflow_config.loader import load_workflow_config
from fundflow_config.schema import DefaultStepDef, LabelSet, WorkflowConfig

_logger = logging.getLogger("fundflow_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "workflow.yaml"


@lru_cache(maxsize=8)
def _load_cached(path: Path) -> WorkflowConfig:
    config = load_workflow_config(path)
    _logger.info(
        "workflow_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "locale": config.locale,
            "step_count": len(config.default_steps),
        },
    )
    return config


def get_workflow_config(path: Path | str | None = None) -> WorkflowConfig:
    """The public configuration entrypoint.

    Args:
        path: Override path to a workflow YAML file.  Defaults to the
            packaged ``defaults/workflow.yaml``.

    Returns:
        Frozen WorkflowConfig.  Repeated calls for the same path return
        the same object.
    """
    resolved = Path(path).resolve() if path is not None else DEFAULT_CONFIG_PATH
    return _load_cached(resolved)


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DefaultStepDef",
    "LabelSet",
    "WorkflowConfig",
    "get_workflow_config",
]
