"""
secrets_manager
================

Loads exchange credentials without baking them into config files.  A
value is read from the environment, or, when a ``{NAME}_FILE`` variable
is set, from the file it points to.  This lets operators mount the API
secret as a file (Docker or Kubernetes secrets) without leaking it into
the process environment.

Example usage::

    from exchanges.src.exchanges.secrets_manager import EnvFileSecretsManager

    secrets = EnvFileSecretsManager()
    api_key = secrets.get_secret("BITSTAMP_API_KEY")
    api_secret = secrets.get_secret("BITSTAMP_API_SECRET")
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class BaseSecretsManager:
    """Abstract base class for secrets managers."""

    def get_secret(self, name: str) -> Optional[str]:  # pragma: no cover - override
        """Return the secret value for ``name`` or ``None`` if unavailable."""
        raise NotImplementedError


class EnvFileSecretsManager(BaseSecretsManager):
    """
    Loads secrets from environment variables and optional ``*_FILE`` paths.

    If both ``{name}`` and ``{name}_FILE`` are set, the file takes
    precedence.  A file that cannot be read yields ``None`` and a warning;
    deciding whether a missing secret is fatal is left to the caller.
    """

    def __init__(self, base_path: Optional[Path] = None) -> None:
        #: Optional base directory to resolve relative file paths.
        self.base_path = base_path
        self._cache: Dict[str, Optional[str]] = {}

    def get_secret(self, name: str) -> Optional[str]:
        if name in self._cache:
            return self._cache[name]

        file_path = os.getenv(f"{name}_FILE")
        if file_path:
            path = Path(file_path)
            if not path.is_absolute() and self.base_path is not None:
                path = self.base_path / path
            try:
                value: Optional[str] = path.read_text(encoding="utf-8").strip()
                logger.debug("Loaded %s from %s", name, path)
            except OSError as exc:
                logger.warning("Failed to read secret file for %s (%s): %s", name, path, exc)
                value = None
        else:
            value = os.getenv(name)

        self._cache[name] = value
        return value


def get_default_secrets_manager() -> BaseSecretsManager:
    """Return the secrets manager used by :meth:`ExchangeConfig.from_env`.

    Relative ``*_FILE`` paths are resolved against ``SECRETS_BASE_PATH``
    when it is set.
    """
    base = os.getenv("SECRETS_BASE_PATH")
    return EnvFileSecretsManager(base_path=Path(base) if base else None)


__all__ = [
    "BaseSecretsManager",
    "EnvFileSecretsManager",
    "get_default_secrets_manager",
]
