# TaskFlow: configuration
# Override defaults via taskflow.yaml (or TASKFLOW_CONFIG) and TASKFLOW_* env vars.

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

CONFIG_PATH = Path(__file__).parent.parent / "taskflow.yaml"
ENV_PREFIX = "TASKFLOW_"

MODES = ("remote", "memory")


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


@dataclass
class Config:
    """Runtime configuration for the TaskFlow server."""

    # Remote backend (both set = remote mode)
    supabase_url: str = ""
    supabase_key: str = ""
    request_timeout: float = 10.0

    # "" = decide from credentials
    mode: str = ""

    # Web server
    host: str = "127.0.0.1"
    port: int = 3000
    secret_key: str = ""
    max_sessions: int = 1000

    log_level: str = "INFO"

    @property
    def backend_mode(self) -> str:
        """remote when Supabase credentials are present, otherwise memory."""
        if self.mode:
            return self.mode
        return "remote" if self.supabase_url and self.supabase_key else "memory"

    def apply_env(self, environ=None):
        """Let TASKFLOW_* environment variables override file values."""
        env = os.environ if environ is None else environ
        for name, cast in (
            ("supabase_url", str),
            ("supabase_key", str),
            ("mode", str),
            ("host", str),
            ("port", int),
            ("secret_key", str),
            ("max_sessions", int),
            ("log_level", str),
            ("request_timeout", float),
        ):
            raw = env.get(ENV_PREFIX + name.upper())
            if raw is None or raw.strip() == "":
                continue
            try:
                setattr(self, name, cast(raw.strip()))
            except ValueError:
                raise ConfigError(f"{ENV_PREFIX}{name.upper()} must be {cast.__name__}, got: '{raw}'")

    def validate(self):
        self.mode = self.mode.strip().lower()
        if self.mode and self.mode not in MODES:
            raise ConfigError(f"Unknown mode '{self.mode}'. Allowed: {', '.join(MODES)}")
        if self.mode == "remote" and not (self.supabase_url and self.supabase_key):
            raise ConfigError(
                "Remote mode needs supabase_url and supabase_key.\n"
                f"Set them in the config file or export {ENV_PREFIX}SUPABASE_URL "
                f"and {ENV_PREFIX}SUPABASE_KEY."
            )
        if self.max_sessions < 1:
            raise ConfigError(f"max_sessions must be at least 1, got: {self.max_sessions}")

    @classmethod
    def load(cls, path: Optional[str] = None, environ=None) -> "Config":
        """Load config from YAML, then environment, falling back to defaults."""
        env = os.environ if environ is None else environ
        cfg_path = Path(path or env.get(ENV_PREFIX + "CONFIG") or CONFIG_PATH)
        if cfg_path.exists():
            with open(cfg_path, "r") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path} must contain a mapping")
            cfg = cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
        else:
            cfg = cls()
        cfg.apply_env(env)
        cfg.validate()
        return cfg


def setup_logging(level: str = "INFO"):
    """Configure root logging once, on stdout."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s [taskflow] %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
