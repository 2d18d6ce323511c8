"""Base tool class for tools exposed to callers and running agents."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ToolResult:
    """Result from a tool execution."""
    success: bool
    output: str
    error: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], success: bool = True) -> ToolResult:
        """Wrap a JSON-compatible payload; ``output`` is its pretty-printed text."""
        error = payload.get("error") if not success else None
        return cls(
            success=success,
            output=json.dumps(payload, indent=2),
            error=str(error) if error is not None else None,
            data=payload,
        )

    @property
    def is_error(self) -> bool:
        return not self.success

    def to_message(self) -> str:
        if self.success:
            return self.output
        return f"Error: {self.error}\n{self.output}" if self.output else f"Error: {self.error}"


class BaseTool(ABC):
    """Base class for all tools."""

    name: str
    description: str
    parameters: Dict[str, Any]

    @abstractmethod
    async def execute(self, **kwargs) -> ToolResult:
        """Execute the tool with given parameters."""
        pass

    def input_schema(self) -> Dict[str, Any]:
        """JSON schema of the tool arguments."""
        properties = {}
        for key, spec in self.parameters.items():
            properties[key] = {k: v for k, v in spec.items() if k != "required"}
        return {
            "type": "object",
            "properties": properties,
            "required": [k for k, v in self.parameters.items() if v.get("required", False)],
        }

    def to_schema(self) -> Dict[str, Any]:
        """Convert tool to a name/description/input_schema descriptor."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema(),
        }
