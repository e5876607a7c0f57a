from __future__ import annotations

import logging
import os
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from platformdirs import user_data_dir
from pydantic import BaseModel, Field

from .cloud import DEFAULT_TIMEOUT, CloudSyncClient
from .persistence import FileStore, SaveManager

logger = logging.getLogger(__name__)

APP_NAME = "Deckrift"

# Environment variable overrides (useful for tests and power users)
ENV_SAVE_DIR = "DECKRIFT_SAVE_DIR"
ENV_CLOUD_URL = "DECKRIFT_CLOUD_URL"
ENV_CLOUD_TOKEN = "DECKRIFT_CLOUD_TOKEN"


def default_save_dir() -> Path:
    """Platform user data dir, e.g. ~/.local/share/Deckrift/saves on Linux."""
    return Path(user_data_dir(appname=APP_NAME, appauthor=False)) / "saves"


def _load_yaml(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _deep_merge(base: dict, overlay: dict) -> dict:
    merged = dict(base)
    for k, v in (overlay or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            merged[k] = _deep_merge(base[k], v)
        else:
            merged[k] = v
    return merged


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if os.getenv(ENV_SAVE_DIR):
        overrides["save_dir"] = os.environ[ENV_SAVE_DIR]
    cloud: Dict[str, Any] = {}
    if os.getenv(ENV_CLOUD_URL):
        cloud["base_url"] = os.environ[ENV_CLOUD_URL]
    if os.getenv(ENV_CLOUD_TOKEN):
        cloud["token"] = os.environ[ENV_CLOUD_TOKEN]
    if cloud:
        overrides["cloud"] = cloud
    return overrides


class CloudConfig(BaseModel):
    base_url: Optional[str] = Field(default=None, description="Root URL of the save server")
    timeout: float = Field(DEFAULT_TIMEOUT, gt=0, description="Per-request timeout in seconds")
    token: Optional[str] = Field(default=None, description="Bearer token sent with each request")


class AppConfig(BaseModel):
    """Where saves live and how to reach the cloud."""

    save_dir: Path = Field(default_factory=default_save_dir)
    cloud: CloudConfig = Field(default_factory=CloudConfig)

    @classmethod
    def load(cls, user_path: Optional[Path] = None) -> "AppConfig":
        """Load packaged defaults, overlay an optional user YAML file, then env vars."""
        with resources.files("deckrift.data").joinpath("default_config.yaml").open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if user_path is not None:
            if user_path.exists():
                data = _deep_merge(data, _load_yaml(user_path))
                logger.info("Loaded user config from %s", user_path)
            else:
                logger.warning("User config file not found: %s", user_path)

        data = _deep_merge(data, _env_overrides())
        # Nulls in YAML mean "use the built-in default"
        if data.get("save_dir") is None:
            data.pop("save_dir", None)
        config = cls.model_validate(data)
        logger.debug("Config merged: %s", config)
        return config


def build_cloud_client(config: AppConfig) -> Optional[CloudSyncClient]:
    if not config.cloud.base_url:
        return None
    return CloudSyncClient(config.cloud.base_url, token=config.cloud.token, timeout=config.cloud.timeout)


def build_manager(config: AppConfig) -> SaveManager:
    """Wire a file store under ``config.save_dir`` and the optional cloud client."""
    save_dir = Path(config.save_dir).expanduser()
    return SaveManager(FileStore(save_dir), cloud=build_cloud_client(config))
