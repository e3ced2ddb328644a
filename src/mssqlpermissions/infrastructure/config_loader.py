"""
Configuration loader module.

Handles loading of connection settings:
- connection.json: target server, database and authentication
- environment variables: the same settings under a prefix (LOCAL_MSSQL_, AZURE_MSSQL_)
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping

import pydantic

from mssqlpermissions.domain.connection import ConnectionSettings

logger = logging.getLogger(__name__)


class ConfigLoader:
    """
    Load and validate configuration files.

    Credentials can live inline or in a separate JSON file referenced by
    ``auth.credential_file`` (relative paths resolve against the config
    directory).
    """

    def __init__(self, config_dir: str | Path = "config"):
        self.config_dir = Path(config_dir)
        logger.debug("ConfigLoader initialized with directory: %s", self.config_dir)

    def _load_json_file(self, filepath: Path) -> dict:
        """
        Load and parse a JSON file with clear error messages.

        Raises:
            FileNotFoundError: file doesn't exist
            PermissionError: file cannot be read
            ValueError: JSON is malformed, empty or not an object
        """
        if not filepath.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {filepath}\n"
                f"Hint: Copy connection.example.json and customize it."
            )

        try:
            content = filepath.read_text(encoding="utf-8")
        except PermissionError as e:
            raise PermissionError(
                f"Cannot read config file (permission denied): {filepath}"
            ) from e

        if not content.strip():
            raise ValueError(f"Configuration file is empty: {filepath}")

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(
                f"Invalid JSON in config file: {filepath}\n"
                f"Error at line {e.lineno}, column {e.colno}: {e.msg}"
            ) from e

        if not isinstance(data, dict):
            raise ValueError(f"Configuration file must contain a JSON object: {filepath}")
        return data

    def _merge_credential_file(self, auth: dict) -> dict:
        credential_file = auth.pop("credential_file", None)
        if not credential_file:
            return auth

        path = Path(credential_file)
        if not path.is_absolute():
            path = self.config_dir / path
        creds = self._load_json_file(path)
        for key, value in creds.items():
            auth.setdefault(key, value)
        logger.debug("Loaded credentials from %s", path)
        return auth

    def load_connection(self, filename: str = "connection.json") -> ConnectionSettings:
        """
        Load connection settings.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        filepath = self.config_dir / filename
        logger.info("Loading connection settings from: %s", filepath)

        data = self._load_json_file(filepath)
        if isinstance(data.get("auth"), dict):
            data["auth"] = self._merge_credential_file(dict(data["auth"]))

        try:
            settings = ConnectionSettings.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValueError(f"Invalid connection settings in {filepath}:\n{e}") from e

        logger.info(
            "Loaded connection %s:%d/%s (auth=%s)",
            settings.host, settings.port, settings.database, settings.auth.kind,
        )
        return settings


def settings_from_env(prefix: str, environ: Mapping[str, str] | None = None) -> ConnectionSettings:
    """
    Build settings from ``<PREFIX>_SERVER``, ``_PORT``, ``_DATABASE`` and credentials.

    SQL credentials (``_USERNAME``/``_PASSWORD``) win over service principal
    ones (``_CLIENT_ID``/``_CLIENT_SECRET`` with ``AZURE_TENANT_ID``); with
    neither the default directory flow is used.

    Raises:
        ValueError: a required variable is missing or invalid
    """
    env = os.environ if environ is None else environ
    prefix = prefix.rstrip("_").upper()

    def get(name: str) -> str:
        return env.get(f"{prefix}_{name}", "").strip()

    data: dict[str, Any] = {"host": get("SERVER"), "database": get("DATABASE")}
    if get("PORT"):
        data["port"] = get("PORT")

    if get("USERNAME"):
        data["auth"] = {"kind": "sql", "username": get("USERNAME"), "password": get("PASSWORD")}
    elif get("CLIENT_ID"):
        data["auth"] = {
            "kind": "service_principal",
            "client_id": get("CLIENT_ID"),
            "client_secret": get("CLIENT_SECRET"),
            "tenant_id": env.get("AZURE_TENANT_ID", "").strip(),
        }

    try:
        return ConnectionSettings.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValueError(f"Invalid {prefix}_* environment settings:\n{e}") from e
