"""Settings for running Terraform commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Union

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]


@dataclass
class TerraformOptions:
    """Options controlling a Terraform invocation."""

    terraform_binary: str = ""
    terraform_dir: str = ""
    vars: dict[str, Any] = field(default_factory=dict)
    var_files: list[str] = field(default_factory=list)
    targets: list[str] = field(default_factory=list)
    env_vars: dict[str, str] = field(default_factory=dict)
    backend_config: dict[str, Any] = field(default_factory=dict)
    # Regex pattern -> message shown when a retryable error matches.
    retryable_terraform_errors: dict[str, str] = field(default_factory=dict)
    max_retries: int = 0
    time_between_retries: float = 0.0
    upgrade: bool = False
    no_color: bool = False
    no_stderr: bool = False
    output_max_line_size: int = 0
    logger: LoggerLike = field(default_factory=lambda: logging.getLogger("runiac.terraform"))
    plugin_cache_dir: str = ""