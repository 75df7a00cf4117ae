# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Engine Exceptions

Custom exceptions raised while validating and executing workflows.
"""

from typing import Any


class WorkflowEngineException(Exception):
    """Base exception for the workflow engine"""
    pass


class WorkflowValidationError(WorkflowEngineException):
    """Workflow validation failed"""
    def __init__(self, message: str, field: str = None):
        self.message = message
        self.field = field
        super().__init__(message)


class NodeExecutionException(WorkflowEngineException):
    """Node execution failed"""
    def __init__(self, node_id: str, node_type: str, message: str, output: Any = None):
        self.node_id = node_id
        self.node_type = node_type
        self.message = message
        # Partial output to record with the failure (e.g. agent audit record)
        self.output = output
        super().__init__(message)


class NodeConfigurationError(NodeExecutionException):
    """Node is missing required configuration"""
    pass


class NodeTimeoutException(NodeExecutionException):
    """Node execution exceeded its soft timeout"""
    def __init__(self, node_id: str, node_type: str, timeout: int, elapsed: float, output: Any = None):
        super().__init__(
            node_id,
            node_type,
            f"Execution exceeded timeout ({timeout}s, took {elapsed:.1f}s)",
            output=output,
        )
        self.timeout = timeout
        self.elapsed = elapsed


class ContinuationError(WorkflowEngineException):
    """Suspended execution could not be resumed"""
    def __init__(self, message: str, execution_id: str = None, node_id: str = None, details: dict = None):
        self.message = message
        self.execution_id = execution_id
        self.node_id = node_id
        self.details = details or {}
        super().__init__(message)
