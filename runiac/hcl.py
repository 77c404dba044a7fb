"""Formatting of values and variables as Terraform command-line arguments."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any


def format_args(options: Any, *args: str) -> list[str]:
    """Return ``args`` followed by the vars, var files and targets of ``options``."""
    return [
        *args,
        *format_terraform_vars_as_args(options.vars),
        *format_terraform_args("-var-file", options.var_files),
        *format_terraform_args("-target", options.targets),
    ]


def format_terraform_vars_as_args(variables: Mapping[str, Any] | None) -> list[str]:
    """Format variables as ``-var key=value`` argument pairs."""
    return _format(variables, "-var", separate=True)


def format_terraform_args(arg_name: str, values: Iterable[str] | None) -> list[str]:
    """Repeat ``arg_name`` before each of ``values``."""
    return [part for value in values or () for part in (arg_name, value)]


def format_backend_config_as_args(variables: Mapping[str, Any] | None) -> list[str]:
    """Format variables as ``-backend-config=key=value`` arguments."""
    return _format(variables, "-backend-config", separate=False)


def _format(variables: Mapping[str, Any] | None, prefix: str, separate: bool) -> list[str]:
    args: list[str] = []
    for key, value in (variables or {}).items():
        pair = f"{key}={to_hcl_string(value, False)}"
        if separate:
            args.extend((prefix, pair))
        else:
            args.append(f"{prefix}={pair}")
    return args


def to_hcl_string(value: Any, nested: bool = False) -> str:
    """Render ``value`` in HCL syntax; strings are quoted only when nested."""
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(to_hcl_string(item, True) for item in value) + "]"
    if isinstance(value, Mapping) and all(isinstance(k, str) for k in value):
        pairs = (f"{key} = {to_hcl_string(item, True)}" for key, item in value.items())
        return "{" + ", ".join(pairs) + "}"
    return _primitive(value, nested)


def _primitive(value: Any, nested: bool) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, str):
        return f'"{value}"' if nested else value
    if value is None:
        return "<nil>"
    return str(value)