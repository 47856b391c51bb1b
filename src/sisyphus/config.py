"""Configuration loading for the upload client."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import keyring
from keyring.errors import KeyringError

from sisyphus.models import UploadConfig
from sisyphus.upload.exceptions import UploadConfigurationError

logger = logging.getLogger(__name__)

SERVICE_NAME = "sisyphus-upload"
KEY_NAME = "token"
TOKEN_ENV_VAR = "SISYPHUS_TOKEN"

DEFAULT_CONFIG_PATH = Path("config/upload_config.json")


def get_token() -> str | None:
    """Get the upload auth token: system keyring first, then env var fallback.

    Returns:
        Token string, or ``None`` if neither source has one. Servers that
        need no authentication are the common case, so absence is not an error.
    """
    try:
        token = keyring.get_password(SERVICE_NAME, KEY_NAME)
    except KeyringError as exc:
        logger.debug("Keyring unavailable, falling back to %s: %s", TOKEN_ENV_VAR, exc)
        token = None
    if token:
        return token
    return os.environ.get(TOKEN_ENV_VAR) or None


def load_upload_config(
    config_path: Path | None = None,
    **overrides: Any,
) -> UploadConfig:
    """Load upload configuration from JSON, falling back to defaults.

    Reads from ``config/upload_config.json`` when *config_path* is ``None``.
    If that default file does not exist, only *overrides* and the dataclass
    defaults apply. Keyword *overrides* whose value is ``None`` are ignored,
    so CLI options can be passed straight through.

    Args:
        config_path: Optional explicit path to upload_config.json.
        **overrides: Field values taking precedence over the file.

    Returns:
        UploadConfig populated from file + overrides + token lookup.

    Raises:
        UploadConfigurationError: If an explicit *config_path* does not
            exist, or no endpoint is configured anywhere.
    """
    explicit = config_path is not None
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            data = json.load(f)
        logger.debug("Loaded upload config from %s", config_path)
    elif explicit:
        raise UploadConfigurationError(f"Config file not found: {config_path}")

    # Only recognised fields, so stray keys in the JSON are tolerated
    field_names = set(UploadConfig.__dataclass_fields__)
    kwargs = {k: v for k, v in data.items() if k in field_names}
    kwargs.update({k: v for k, v in overrides.items() if v is not None and k in field_names})

    if not kwargs.get("endpoint"):
        raise UploadConfigurationError(
            "No upload endpoint configured.\n"
            "Pass --endpoint URL or set \"endpoint\" in "
            f"{config_path}"
        )

    config = UploadConfig(**kwargs)

    if config.token is None:
        config.token = get_token()

    return config
