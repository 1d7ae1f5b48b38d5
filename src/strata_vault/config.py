"""Configuration module for the Strata vault."""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from strata_vault import __version__
from strata_vault.exceptions import ConfigurationError
from strata_vault.models.schema import Pressure, Structure

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config: survives reinstalls
_USER_ENV = Path.home() / ".strata" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

ENTRIES_DIRNAME = "entries"
META_DIRNAME = ".strata"
CONNECTIONS_FILENAME = "connections.json"
SETTINGS_FILENAME = "settings.json"

# Remembers the vault chosen at runtime across restarts
USER_CONFIG_PATH = Path.home() / ".strata" / "config.json"


def _remembered_vault_path() -> Optional[Path]:
    try:
        with open(USER_CONFIG_PATH, "r", encoding="utf-8") as f:
            stored = json.load(f).get("vaultPath")
    except (OSError, ValueError, AttributeError):
        return None
    if stored and Path(stored).exists():
        return Path(stored)
    return None


def _default_vault_path() -> Path:
    return _remembered_vault_path() or Path.home() / "Documents" / "Strata"


class StrataConfig(BaseModel):
    """Configuration for the Strata vault."""

    # Root of the vault; entries/ and .strata/ live underneath
    vault_path: Path = Field(
        default_factory=lambda: (
            Path(os.getenv("STRATA_VAULT_PATH"))
            if os.getenv("STRATA_VAULT_PATH")
            else _default_vault_path()
        )
    )
    # Server configuration
    server_name: str = Field(default=os.getenv("STRATA_SERVER_NAME", "strata-vault"))
    server_version: str = Field(default=__version__)
    # Defaults applied to freshly created entries
    default_structure: str = Field(
        default_factory=lambda: os.getenv("STRATA_DEFAULT_STRUCTURE", "thought")
    )
    default_pressure: str = Field(
        default_factory=lambda: os.getenv("STRATA_DEFAULT_PRESSURE", "low")
    )
    # Logging
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("STRATA_LOG_DIR")) if os.getenv("STRATA_LOG_DIR") else None
        )
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("STRATA_LOG_LEVEL", "INFO")
    )

    @model_validator(mode="after")
    def _validate_entry_defaults(self) -> "StrataConfig":
        """Reject default structure/pressure values outside their enumerations."""
        try:
            Structure(self.default_structure)
        except ValueError:
            raise ValueError(
                f"default_structure must be one of {[s.value for s in Structure]}"
            )
        try:
            Pressure(self.default_pressure)
        except ValueError:
            raise ValueError(
                f"default_pressure must be one of {[p.value for p in Pressure]}"
            )
        return self

    def get_vault_path(self) -> Path:
        """Get the absolute vault root."""
        return self.vault_path.expanduser().resolve()

    def get_entries_dir(self) -> Path:
        """Directory holding one ``<id>.md`` file per entry."""
        return self.get_vault_path() / ENTRIES_DIRNAME

    def get_meta_dir(self) -> Path:
        """Directory holding vault-level JSON documents."""
        return self.get_vault_path() / META_DIRNAME

    def get_connections_path(self) -> Path:
        return self.get_meta_dir() / CONNECTIONS_FILENAME

    def get_settings_path(self) -> Path:
        return self.get_meta_dir() / SETTINGS_FILENAME

    def ensure_vault(self) -> Path:
        """Create the vault layout if it does not exist yet.

        Creates ``entries/`` and ``.strata/``, an empty connections document
        and the settings echo. Existing documents are never overwritten.

        Returns:
            The absolute vault root.

        Raises:
            ConfigurationError: If the vault location cannot be prepared.
        """
        vault = self.get_vault_path()
        try:
            self.get_entries_dir().mkdir(parents=True, exist_ok=True)
            self.get_meta_dir().mkdir(parents=True, exist_ok=True)

            connections_path = self.get_connections_path()
            if not connections_path.exists():
                connections_path.write_text(
                    json.dumps({"connections": []}, indent=2), encoding="utf-8"
                )

            settings_path = self.get_settings_path()
            if not settings_path.exists():
                settings_path.write_text(
                    json.dumps({"vaultPath": str(vault)}, indent=2), encoding="utf-8"
                )
        except OSError as e:
            raise ConfigurationError(
                f"Cannot prepare vault at {vault}: {e}", config_key="vault_path"
            ) from e

        logger.debug(f"Vault ready at {vault}")
        return vault

    def set_vault_path(self, new_path: Union[str, Path]) -> Path:
        """Switch to another vault and remember it for later runs.

        The new location is prepared with ``ensure_vault``.

        Returns:
            The absolute root of the new vault.

        Raises:
            ConfigurationError: If the location cannot be remembered or
                prepared.
        """
        self.vault_path = Path(new_path).expanduser()
        try:
            USER_CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
            USER_CONFIG_PATH.write_text(
                json.dumps({"vaultPath": str(self.get_vault_path())}, indent=2),
                encoding="utf-8",
            )
        except OSError as e:
            raise ConfigurationError(
                f"Cannot remember vault location: {e}", config_key="vault_path"
            ) from e
        vault = self.ensure_vault()
        logger.info(f"Switched to vault {vault}")
        return vault


# Create a global config instance
config = StrataConfig()
