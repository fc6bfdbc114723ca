"""Parley: tool-calling conversations over OpenAI- and Gemini-style APIs.

Public API:
    - Chat: A multi-turn session with tools, browsing and file search
    - Config: Immutable configuration (credentials, defaults, retry policy)
    - ToolBuilder / ToolDescriptor: Declare functions the model may call
"""

from __future__ import annotations

import logging

from parley.chat import Chat, ConversationState, RunOutcome, TurnState
from parley.config import Config
from parley.dispatch import ToolDispatcher
from parley.errors import (
    APIError,
    BudgetExceededError,
    ConfigurationError,
    ParleyError,
    StructuralResponseError,
    ToolNotFoundError,
    TransportError,
)
from parley.repair import parse_lenient
from parley.retry import RetryPolicy
from parley.tools import ToolBuilder, ToolDescriptor, ToolParameter
from parley.transport import Transport

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("parley-ai")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("parley").addHandler(logging.NullHandler())

__all__ = [
    "APIError",
    "BudgetExceededError",
    "Chat",
    "Config",
    "ConfigurationError",
    "ConversationState",
    "ParleyError",
    "RetryPolicy",
    "RunOutcome",
    "StructuralResponseError",
    "ToolBuilder",
    "ToolDescriptor",
    "ToolDispatcher",
    "ToolNotFoundError",
    "ToolParameter",
    "Transport",
    "TransportError",
    "TurnState",
    "parse_lenient",
]
