"""Tool dispatch: lookup, argument validation, execution and error mapping."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .error_handling import (
    ErrorContext,
    InternalError,
    InvalidArgumentsError,
    NotFoundError,
    PolicyViolationError,
    validate_parameter_types,
    validate_required_params,
)
from .formatting import build_envelope
from .registry import PYTHON_TYPES, TOOL_DEFINITIONS, ToolDefinition

logger = logging.getLogger(__name__)


class DispatchState(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    EXECUTING = "executing"
    RESPONDING = "responding"


@dataclass
class ToolInvocation:
    """One incoming tools/call request."""
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


class ToolDispatcher:
    """Runs one invocation at a time against the shared DatabaseManager.

    Create a dispatcher per request; only ``db`` is shared between them.
    """

    def __init__(self, db, tools: Optional[Mapping[str, ToolDefinition]] = None):
        self.db = db
        self.tools = TOOL_DEFINITIONS if tools is None else tools
        self.state = DispatchState.IDLE

    def list_tools(self) -> List[ToolDefinition]:
        return list(self.tools.values())

    def _transition(self, state: DispatchState, name: str) -> None:
        logger.debug(f"{name}: {self.state.value} -> {state.value}")
        self.state = state

    def validate(self, tool: ToolDefinition, arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Check the contract and return handler keyword arguments."""
        arguments = dict(arguments or {})
        validate_required_params(arguments, tool.required, operation=tool.name)
        validate_parameter_types(
            arguments,
            {name: PYTHON_TYPES[spec.type] for name, spec in tool.parameters.items()},
            operation=tool.name
        )

        kwargs: Dict[str, Any] = {}
        for name, spec in tool.parameters.items():
            value = arguments.get(name)
            if value is None:
                if spec.default is None:
                    continue
                value = spec.default

            if spec.type == "integer":
                if isinstance(value, float) and not value.is_integer():
                    raise InvalidArgumentsError(f"{name} must be a whole number", operation=tool.name)
                value = int(value)
                if spec.minimum is not None and value < spec.minimum:
                    raise InvalidArgumentsError(
                        f"{name} must be at least {spec.minimum}", operation=tool.name
                    )

            if spec.items:
                item_types = PYTHON_TYPES[spec.items]
                if any(not isinstance(item, item_types) for item in value):
                    raise InvalidArgumentsError(
                        f"{name} should be a list of {spec.items} values", operation=tool.name
                    )
                value = list(value)

            kwargs[spec.python_name or name] = value

        unexpected = sorted(set(arguments) - set(tool.parameters))
        if unexpected:
            logger.debug(f"{tool.name}: ignoring unexpected arguments {unexpected}")

        return kwargs

    async def dispatch(self, invocation: ToolInvocation) -> Dict[str, Any]:
        """Run an invocation and return the MCP content envelope.

        Raises:
            NotFoundError: unknown tool, or an operation-level lookup miss
            InvalidArgumentsError: contract violations
            PolicyViolationError: statement refused by the write guard
            InternalError: anything else that went wrong while executing
        """
        name = invocation.name
        try:
            self._transition(DispatchState.VALIDATING, name)
            tool = self.tools.get(name)
            if tool is None:
                raise NotFoundError(f"Unknown tool: {name}", operation=name)
            kwargs = self.validate(tool, invocation.arguments)

            self._transition(DispatchState.EXECUTING, name)
            with ErrorContext(name):
                try:
                    payload = await tool.handler(self.db, **kwargs)
                except (NotFoundError, InvalidArgumentsError, PolicyViolationError) as e:
                    if e.operation is None:
                        e.operation = name
                    raise
                except Exception as e:
                    raise InternalError(f"Error executing {name}: {e}", operation=name, original_error=e) from e

            self._transition(DispatchState.RESPONDING, name)
            return build_envelope(payload)
        finally:
            self._transition(DispatchState.IDLE, name)
