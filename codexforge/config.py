"""Runtime configuration, env-driven.

Centralized config using pydantic-settings.  Reads from a .env file and
CODEXFORGE_* environment variables.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from codexforge.models.build import AnchorKind
from codexforge.models.entry import StorageProtocol
from codexforge.storage.drive import DRIVE_API_BASE, DRIVE_UPLOAD_BASE


class ForgeConfig(BaseSettings):
    """Codex Forge configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export CODEXFORGE_ANCHOR=google
        export CODEXFORGE_STORAGE_BACKEND=gdrive
        export CODEXFORGE_TOKEN_PATH=~/.codexforge/token.json

    Or via .env file::

        CODEXFORGE_LOG_LEVEL=DEBUG
        CODEXFORGE_SIGNING_KEY_PATH=/etc/codexforge/signing-key.pem
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CODEXFORGE_",
        env_file_encoding="utf-8",
    )

    log_level: str = "INFO"

    # Entry defaults
    org: str = "Codex Forge"
    anchor: AnchorKind = AnchorKind.MOCK
    storage_protocol: StorageProtocol = StorageProtocol.LOCAL
    self_reference: bool = False

    # Where payloads and entries are uploaded ("none" keeps everything local
    # to the caller and records the filename as the location)
    storage_backend: Literal["none", "local", "gdrive"] = "none"
    local_storage_path: Path = Path(".codexforge/objects")

    # Credentials and keys
    token_path: Path = Path(".codexforge/token.json")
    signing_key_path: Path | None = None  # PEM, P-256; ephemeral keys when unset

    # Google Drive endpoints
    drive_api_base: str = DRIVE_API_BASE
    drive_upload_base: str = DRIVE_UPLOAD_BASE
    http_timeout_seconds: float = 30.0


# Module-level singleton; import as `from codexforge.config import config`
config = ForgeConfig()
