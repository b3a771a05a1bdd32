"""imapdb configuration package.

What:
  Provide the import surface for settings validation and loading.

Interfaces:
  - Settings: pydantic model with connection parameters and store behaviour.
  - load_settings: merge YAML file, environment, and overrides into Settings.
  - DEFAULT_MAILBOX / DEFAULT_PORT: defaults applied when values are omitted.
"""

from .loader import ENV_FIELDS, load_settings
from .schema import DEFAULT_MAILBOX, DEFAULT_PORT, Settings, split_address

__all__ = [
    "ENV_FIELDS",
    "DEFAULT_MAILBOX",
    "DEFAULT_PORT",
    "Settings",
    "load_settings",
    "split_address",
]
