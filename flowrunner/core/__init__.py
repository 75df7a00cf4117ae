# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Core infrastructure for FlowRunner: configuration, errors, logging.
"""

from flowrunner.core.config import Config, get_config, load_config, reload_config
from flowrunner.core.errors import FlowRunnerError, NotFoundError, ConfigurationError
from flowrunner.core.logging import configure_logging, get_engine_logger, log_event

__all__ = [
    "Config",
    "get_config",
    "load_config",
    "reload_config",
    "FlowRunnerError",
    "NotFoundError",
    "ConfigurationError",
    "configure_logging",
    "get_engine_logger",
    "log_event",
]
