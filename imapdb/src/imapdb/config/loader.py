"""Resolve imapdb settings from a YAML file, the environment, and overrides.

What:
  Build a validated :class:`~imapdb.config.schema.Settings` instance from the
  sources operators actually use: an optional YAML file, the ``IMAP_*``
  environment variables, and explicit overrides passed by the CLI.

Why:
  The CLI must fail early with a readable message when credentials are missing
  instead of attempting a login with empty strings. Centralising the merge keeps
  the precedence rules in one place.

How:
  Read the YAML document named by ``path`` or ``IMAPDB_CONFIG_PATH`` (if any),
  layer environment values over it, then overrides, and validate the result
  with Pydantic. Validation and parse failures become :class:`ConfigError`.

Interfaces:
  :func:`load_settings`, :data:`ENV_FIELDS`.

Invariants:
  - Precedence is overrides > environment > YAML file > model defaults.
  - Empty environment variables count as unset.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import ValidationError as _PydanticValidationError

from ..errors import ConfigError
from .schema import Settings

_CONFIG_ENV = "IMAPDB_CONFIG_PATH"

ENV_FIELDS: Dict[str, str] = {
    "IMAP_SERVER": "address",
    "IMAP_USER": "username",
    "IMAP_PASSWORD": "password",
    "IMAP_MAILBOX": "mailbox",
}
"""Environment variable -> settings field mapping."""

_FIELD_HINTS = {field: env for env, field in ENV_FIELDS.items()}


def load_settings(
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    path: Optional[Path] = None,
) -> Settings:
    """Merge every configuration source and validate the result.

    Args:
      overrides: Explicit values (``None`` entries are ignored).
      environ: Environment mapping; defaults to :data:`os.environ`.
      path: YAML file to read; defaults to ``$IMAPDB_CONFIG_PATH`` when set.

    Returns:
      Validated :class:`Settings`.

    Raises:
      ConfigError: When the YAML file is unreadable or the merged payload fails
        validation.
    """

    env = os.environ if environ is None else environ
    payload: Dict[str, Any] = {}
    config_path = path
    if config_path is None and env.get(_CONFIG_ENV):
        config_path = Path(env[_CONFIG_ENV]).expanduser()
    if config_path is not None:
        payload.update(_read_yaml(config_path))
    for env_name, field in ENV_FIELDS.items():
        value = env.get(env_name)
        if value:
            payload[field] = value
    if overrides:
        payload.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return Settings.model_validate(payload)
    except _PydanticValidationError as exc:
        raise ConfigError(f"invalid settings: {_describe(exc)}") from exc


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read config file {path}: {exc}") from exc
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return document


def _describe(exc: _PydanticValidationError) -> str:
    """Render pydantic errors as ``field: message (set ENV)`` fragments."""

    fragments = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())) or "settings"
        message = error.get("msg", "invalid value")
        hint = _FIELD_HINTS.get(field)
        if hint:
            fragments.append(f"{field}: {message} (set {hint})")
        else:
            fragments.append(f"{field}: {message}")
    return "; ".join(fragments)
