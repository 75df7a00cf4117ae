# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Custom exceptions for FlowRunner infrastructure.

Lookup and configuration failures raised by the registries, stores and
config loader. Workflow execution errors live in flowrunner.exceptions.
"""

from typing import Optional


class FlowRunnerError(Exception):
    """Base exception for FlowRunner infrastructure errors."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        """
        Initialize FlowRunner error.

        Args:
            message: Human-readable error message (also used as node log text)
            details: Additional error details
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(FlowRunnerError):
    """Registered item or stored record not found."""

    def __init__(self, resource: str, identifier: str, details: Optional[dict] = None):
        """
        Initialize not found error.

        Args:
            resource: Type of resource (e.g., "Tool", "Execution")
            identifier: Resource identifier
            details: Additional error details
        """
        message = f"{resource} not found: {identifier}"
        super().__init__(message, details=details)
        self.resource = resource
        self.identifier = identifier


class ConfigurationError(FlowRunnerError):
    """Configuration file could not be loaded."""
    pass
