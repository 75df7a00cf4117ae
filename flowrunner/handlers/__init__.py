# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Node Handler Chain

Handlers are tried in priority order; the first whose can_handle matches
routes the node. Nodes no handler claims fan out to every outgoing edge.
"""

from typing import Iterable, List

from flowrunner.handlers.base import HandlerResult, NodeHandler, error_text, follow_edges
from flowrunner.handlers.button_message import ButtonClickRouter, PendingSendHandler
from flowrunner.handlers.condition import ConditionRouter


def default_handlers(button_tool_ids: Iterable[str]) -> List[NodeHandler]:
    button_tool_ids = list(button_tool_ids)
    return [
        ConditionRouter(),
        PendingSendHandler(button_tool_ids),
        ButtonClickRouter(button_tool_ids),
    ]


__all__ = [
    "HandlerResult",
    "NodeHandler",
    "ConditionRouter",
    "PendingSendHandler",
    "ButtonClickRouter",
    "default_handlers",
    "error_text",
    "follow_edges",
]
