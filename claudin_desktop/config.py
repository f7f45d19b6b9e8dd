"""Configuration management for the ClaudIn desktop bootstrap."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from claudin_desktop.models import RuntimeMode


class AppConfig(BaseModel):
    name: str = "ClaudIn"
    namespace: str = "claudin"
    log_level: str = "INFO"
    log_to_file: bool = True


class RuntimeConfig(BaseModel):
    # None means "detect": a frozen (PyInstaller) build runs packaged.
    mode: Optional[RuntimeMode] = None
    resource_dir: Optional[str] = None


class BackendConfig(BaseModel):
    dev_command: list[str] = Field(default_factory=lambda: ["npx", "tsx"])
    packaged_command: list[str] = Field(default_factory=lambda: ["node"])
    host: str = "localhost"
    port: int = Field(default=3847, ge=1, le=65535)
    health_path: str = "/api/stats"
    ready_timeout_seconds: float = Field(default=30.0, gt=0)
    # Looked up in <home>/<namespace>/ then <home>/, never overriding real env vars.
    env_files: list[str] = Field(default_factory=lambda: [".env"])

    @property
    def health_url(self) -> str:
        return f"http://{self.host}:{self.port}{self.health_path}"


class ExtensionConfig(BaseModel):
    manifest_name: str = "manifest.json"


class BrowserConfig(BaseModel):
    extensions_url: str = "chrome://extensions"


class Config(BaseSettings):
    """Bootstrap configuration loaded from env vars and config file."""

    app: AppConfig = Field(default_factory=AppConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    extension: ExtensionConfig = Field(default_factory=ExtensionConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)

    model_config = {
        "env_prefix": "CLAUDIN_",
        "env_nested_delimiter": "__",
        "extra": "ignore",
    }

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> Config:
        """Load configuration from YAML file and environment variables."""
        config_path = config_path or os.getenv("CLAUDIN_CONFIG", "./config.yaml")

        file_config = {}
        config_file = Path(config_path)
        if config_file.exists():
            with open(config_file) as f:
                file_config = yaml.safe_load(f) or {}

        return cls(**file_config)

    def runtime_command(self, mode: RuntimeMode) -> list[str]:
        if mode is RuntimeMode.PACKAGED:
            return list(self.backend.packaged_command)
        return list(self.backend.dev_command)
