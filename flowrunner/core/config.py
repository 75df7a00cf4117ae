# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
FlowRunner Configuration - Single source of truth.
YAML is king. Env vars ONLY for locating the config file.

Everything the engine tunes at runtime (storage location, agent budget,
which tools send interactive button messages) lives in one plain-text
YAML file that can be inspected with `cat` or `grep`.
"""

import os
import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List

from flowrunner.core.errors import ConfigurationError


DEFAULT_CONFIG_PATH = "configs/flowrunner.yaml"


# =============================================================================
# CONFIGURATION DATACLASS
# =============================================================================

@dataclass(frozen=True)
class Config:
    """
    Immutable engine configuration.
    All values from YAML. No hidden state.
    """

    # -- Storage --
    storage_dir: str = "./volumes/flowrunner"

    # -- Engine --
    agent_timeout_seconds: int = 60
    button_tool_ids: List[str] = field(default_factory=lambda: [
        "whatsapp_send_button_message"
    ])
    comment_tool_prefix: str = "wordpress_"

    # -- Logging --
    log_level: str = "INFO"
    log_format: str = "json"

    # -- Audit (History MCP) --
    history_mcp_url: Optional[str] = None
    http_timeout: float = 10.0

    def is_button_tool(self, tool_id: Optional[str]) -> bool:
        return bool(tool_id) and tool_id in self.button_tool_ids


# =============================================================================
# LOADER
# =============================================================================

def get(d: dict, *keys, default=None):
    """Safely navigate nested dicts."""
    for k in keys:
        if not isinstance(d, dict):
            return default
        d = d.get(k, {})
    return d if d != {} else default


def load_config(path: str = DEFAULT_CONFIG_PATH) -> Config:
    """
    Load configuration from YAML.
    Returns defaults if file doesn't exist.

    Raises:
        ConfigurationError: If the file exists but is not valid YAML
    """
    if not Path(path).exists():
        return Config()

    try:
        with open(path) as f:
            y = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}")

    if not isinstance(y, dict):
        raise ConfigurationError(f"Config root must be a mapping: {path}")

    button_tools = get(y, "engine", "button_tool_ids")
    if button_tools is not None and not isinstance(button_tools, list):
        raise ConfigurationError("engine.button_tool_ids must be a list")

    return Config(
        # Storage
        storage_dir=get(y, "storage", "dir") or "./volumes/flowrunner",

        # Engine
        agent_timeout_seconds=int(get(y, "engine", "agent_timeout_seconds") or 60),
        button_tool_ids=button_tools or ["whatsapp_send_button_message"],
        comment_tool_prefix=get(y, "engine", "comment_tool_prefix") or "wordpress_",

        # Logging
        log_level=os.getenv("LOG_LEVEL") or get(y, "logging", "level") or "INFO",
        log_format=get(y, "logging", "format") or "json",

        # Audit
        history_mcp_url=get(y, "audit", "history_mcp_url"),
        http_timeout=float(get(y, "audit", "timeout") or 10.0),
    )


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create global config instance."""
    global _config
    if _config is None:
        config_path = os.getenv("FLOWRUNNER_CONFIG_PATH", DEFAULT_CONFIG_PATH)
        _config = load_config(config_path)
    return _config


def reload_config() -> Config:
    """Force reload configuration."""
    global _config
    _config = None
    return get_config()
