"""Execution engine backed by the Claude Agent SDK."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from .events import (
    FILE_WRITE_TOOLS,
    ContentStep,
    EngineEvent,
    EngineOptions,
    FileWrite,
    Instructions,
    SessionEstablished,
    TerminalFailure,
    TerminalSuccess,
)

logger = logging.getLogger(__name__)

DELEGATION_SERVER_NAME = "agent-delegation"


def _file_target(tool_name: str, tool_input: Any) -> Optional[str]:
    if tool_name not in FILE_WRITE_TOOLS or not isinstance(tool_input, dict):
        return None
    path = tool_input.get("file_path") or tool_input.get("notebook_path")
    return str(path) if path else None


def translate_message(message: Any) -> List[EngineEvent]:
    """Map one SDK message onto engine events.

    Messages are matched by class name so this stays importable (and
    testable) without the SDK installed.
    """
    kind = type(message).__name__

    if kind == "SystemMessage":
        if getattr(message, "subtype", None) != "init":
            return []
        data = getattr(message, "data", None) or {}
        session_id = data.get("session_id")
        return [SessionEstablished(session_id=session_id)] if session_id else []

    if kind == "AssistantMessage":
        texts: List[str] = []
        writes: List[FileWrite] = []
        for block in getattr(message, "content", None) or []:
            if hasattr(block, "name") and hasattr(block, "input"):
                target = _file_target(block.name, block.input)
                if target:
                    writes.append(FileWrite(tool=block.name, path=target))
            elif hasattr(block, "text"):
                texts.append(block.text)
        if not texts and not writes:
            return []
        return [ContentStep(text="\n".join(texts) or None, file_writes=tuple(writes))]

    if kind == "ResultMessage":
        subtype = getattr(message, "subtype", "")
        if subtype == "success" and not getattr(message, "is_error", False):
            return [TerminalSuccess(result=getattr(message, "result", None) or "")]
        return [TerminalFailure(error=getattr(message, "result", None) or subtype or "unknown error")]

    return []


class ClaudeExecution:
    """One ``ClaudeSDKClient`` conversation.

    The delegation tool is bound to the session id reported by the SDK's
    init message, so nested calls resolve to the right parent context.
    """

    def __init__(self, instructions: Instructions, options: EngineOptions):
        self.instructions = instructions
        self.options = options
        self.session_id = ""
        self._client = None
        self._started = False

    def __aiter__(self) -> AsyncIterator[EngineEvent]:
        if self._started:
            raise RuntimeError("ClaudeExecution can only be iterated once")
        self._started = True
        return self._stream()

    async def interrupt(self) -> None:
        if self._client is not None:
            await self._client.interrupt()

    def _build_options(self):
        from claude_agent_sdk import ClaudeAgentOptions

        kwargs: Dict[str, Any] = dict(
            system_prompt=self.instructions.system_prompt,
            permission_mode=self.options.permission_mode,
        )
        if self.options.resume:
            kwargs["resume"] = self.options.resume
            kwargs["fork_session"] = self.options.fork
        if self.options.model:
            kwargs["model"] = self.options.model
        if self.options.cwd:
            kwargs["cwd"] = self.options.cwd

        server = self._build_delegation_server()
        if server is not None:
            tool_name = self.options.delegate_tool.name
            kwargs["mcp_servers"] = {DELEGATION_SERVER_NAME: server}
            kwargs["allowed_tools"] = [f"mcp__{DELEGATION_SERVER_NAME}__{tool_name}"]

        return ClaudeAgentOptions(**kwargs)

    def _build_delegation_server(self):
        delegate_tool = self.options.delegate_tool
        if delegate_tool is None:
            return None

        from claude_agent_sdk import create_sdk_mcp_server, tool

        execution = self

        @tool(delegate_tool.name, delegate_tool.description, delegate_tool.input_schema())
        async def delegate_to_agent(args: Dict[str, Any]) -> Dict[str, Any]:
            logger.info(
                "Delegation tool called from session %s, agent: %s",
                execution.session_id or "<pending>",
                args.get("agent"),
            )
            result = await delegate_tool.execute(caller_session_id=execution.session_id, **args)
            text = result.output or json.dumps({"success": result.success, "error": result.error})
            return {
                "content": [{"type": "text", "text": text}],
                "is_error": not result.success,
            }

        return create_sdk_mcp_server(name=DELEGATION_SERVER_NAME, version="1.0.0", tools=[delegate_to_agent])

    async def _stream(self) -> AsyncIterator[EngineEvent]:
        from claude_agent_sdk import ClaudeSDKClient

        client = ClaudeSDKClient(options=self._build_options())
        self._client = client
        await client.connect()
        try:
            await client.query(self.instructions.prompt)
            async for message in client.receive_response():
                for event in translate_message(message):
                    if isinstance(event, SessionEstablished):
                        self.session_id = event.session_id
                    yield event
        finally:
            self._client = None
            await client.disconnect()


class ClaudeEngine:
    """Runs agents through the Claude Agent SDK.

    The SDK is imported lazily, when the first execution starts.
    """

    def start(self, instructions: Instructions, options: EngineOptions) -> ClaudeExecution:
        logger.debug("Starting Claude execution for %s (resume=%s)", options.agent, options.resume)
        return ClaudeExecution(instructions, options)

    def __repr__(self) -> str:
        return "ClaudeEngine()"
