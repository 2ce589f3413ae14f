"""
WebSocket chat server for roxy.

Each connection owns one session and one TurnOrchestrator. While a turn runs, streamed
text, tool calls and tool results are pushed to the client as JSON events, in order,
through a per-connection outbox drained by a sender task.

Client -> server messages:
- {"type": "message", "content": "..."}
- {"type": "get_sessions"}
- {"type": "switch_session", "sessionId": "..."}
- {"type": "create_session"}
- {"type": "delete_session", "sessionId": "..."}
- {"type": "ping"}

Server -> client events: connected, typing, stream, tool_call, tool_result, done,
sessions_list, session_switched, session_history, session_created, session_deleted,
pong, error.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse

from ..core.config import Settings
from ..core.context import ContextBuilder
from ..core.errors import HistoryInvariantError, TransportFailure
from ..core.llm_client import CompletionClient
from ..core.messages import ToolInvocation, ToolResult
from ..core.orchestrator import TurnOrchestrator
from ..core.session import SessionManager
from ..tools import build_registry
from ..tools.registry import ToolRegistry


logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50

INDEX_HTML = """<!doctype html>
<html>
<head>
<meta charset="utf-8">
<title>Roxy</title>
<style>
body { font-family: sans-serif; max-width: 48rem; margin: 2rem auto; }
#log { white-space: pre-wrap; border: 1px solid #ccc; padding: 1rem; min-height: 20rem; }
.tool { color: #8a2be2; } .error { color: #c00; }
</style>
</head>
<body>
<div id="log"></div>
<form id="form"><input id="input" size="60" autocomplete="off"> <button>Send</button></form>
<script>
const log = document.getElementById("log");
const ws = new WebSocket(`ws://${location.host}/ws`);
function line(text, cls) {
  const el = document.createElement("div");
  if (cls) el.className = cls;
  el.textContent = text;
  log.appendChild(el);
  return el;
}
let current = null;
ws.onmessage = (msg) => {
  const ev = JSON.parse(msg.data);
  if (ev.type === "stream") {
    if (!current) current = line("agent> ");
    current.textContent += ev.content;
  } else if (ev.type === "tool_call") {
    line(`-> ${ev.toolName} ${JSON.stringify(ev.args)}`, "tool");
  } else if (ev.type === "tool_result") {
    line(`${ev.toolName} ${ev.ok ? "ok" : "failed"}`, "tool");
    current = null;
  } else if (ev.type === "done") {
    if (!current && ev.content) line("agent> " + ev.content);
    current = null;
  } else if (ev.type === "error") {
    line(ev.content, "error");
    current = null;
  }
};
document.getElementById("form").onsubmit = (e) => {
  e.preventDefault();
  const input = document.getElementById("input");
  if (!input.value.trim()) return;
  line("you> " + input.value);
  ws.send(JSON.stringify({ type: "message", content: input.value }));
  input.value = "";
};
</script>
</body>
</html>
"""


def new_session_key() -> str:
    return f"web-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class ChatConnection:
    """One websocket client: its current session, orchestrator and outgoing events."""

    def __init__(
        self,
        websocket: WebSocket,
        settings: Settings,
        client: CompletionClient,
        tools: ToolRegistry,
        context: ContextBuilder,
        sessions: SessionManager,
    ):
        self.websocket = websocket
        self.settings = settings
        self.client = client
        self.tools = tools
        self.context = context
        self.sessions = sessions
        self.outbox: asyncio.Queue = asyncio.Queue()
        self.use_session(new_session_key())

    def use_session(self, key: str):
        self.session = self.sessions.get_or_create(key)
        self.orchestrator = TurnOrchestrator(
            self.client,
            self.tools,
            self.context,
            self.session,
            model=self.settings.model,
            max_iterations=self.settings.max_iterations,
            stream=self.settings.stream,
            on_delta=self._on_delta,
            on_tool_call=self._on_tool_call,
            on_tool_result=self._on_tool_result,
        )

    def send(self, event_type: str, **fields: Any):
        self.outbox.put_nowait({"type": event_type, **fields})

    async def pump(self):
        while True:
            event = await self.outbox.get()
            await self.websocket.send_json(event)

    def _on_delta(self, text: str):
        self.send("stream", content=text)

    def _on_tool_call(self, invocation: ToolInvocation):
        self.send("tool_call", id=invocation.id, toolName=invocation.name, args=json.loads(invocation.arguments))

    def _on_tool_result(self, result: ToolResult):
        self.send("tool_result", id=result.tool_call_id, toolName=result.name, ok=result.ok, result=result.result)

    async def handle(self, raw: str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            self.send("error", content="Messages must be JSON objects")
            return
        if not isinstance(data, dict):
            self.send("error", content="Messages must be JSON objects")
            return

        kind = data.get("type")
        handler = {
            "message": self.on_message,
            "get_sessions": self.on_get_sessions,
            "switch_session": self.on_switch_session,
            "create_session": self.on_create_session,
            "delete_session": self.on_delete_session,
            "ping": self.on_ping,
        }.get(kind)
        if handler is None:
            self.send("error", content=f"Unknown message type: {kind}")
            return
        try:
            await handler(data)
        except ValueError as exc:
            self.send("error", content=str(exc))

    async def on_message(self, data: Dict[str, Any]):
        content = data.get("content")
        if not isinstance(content, str) or not content.strip():
            raise ValueError("Message content is required")
        self.send("typing", content="Roxy is thinking...")
        try:
            outcome = await self.orchestrator.run_turn(content)
        except TransportFailure as exc:
            logger.error("Turn failed for session %s: %s", self.session.key, exc)
            self.send("error", content=f"Error talking to model: {exc}")
            return
        except HistoryInvariantError as exc:
            logger.error("Session %s history is inconsistent: %s", self.session.key, exc)
            self.send("error", content=f"Session history is inconsistent: {exc}")
            return
        self.send(
            "done",
            state=outcome.state.value,
            iterations=outcome.iterations,
            content=outcome.reply.content if outcome.reply is not None else None,
        )

    async def on_get_sessions(self, data: Dict[str, Any]):
        keys = self.sessions.list_keys()
        if self.session.key not in keys:
            keys.append(self.session.key)
        sessions = [{"id": key, "name": key, "active": key == self.session.key} for key in sorted(keys)]
        self.send("sessions_list", sessions=sessions)

    async def on_switch_session(self, data: Dict[str, Any]):
        key = _session_id(data, "switch")
        self.use_session(key)
        self.send("session_switched", sessionId=key, message=f"Switched to session: {key}")
        self.send("session_history", history=[m.to_record() for m in self.session.history(HISTORY_LIMIT)])

    async def on_create_session(self, data: Dict[str, Any]):
        key = new_session_key()
        self.use_session(key)
        self.send("session_created", sessionId=key, message=f"Created and switched to new session: {key}")

    async def on_delete_session(self, data: Dict[str, Any]):
        key = _session_id(data, "delete")
        if key == self.session.key:
            raise ValueError("Cannot delete the currently active session")
        if not self.sessions.delete(key):
            raise ValueError(f"Session {key} not found")
        self.send("session_deleted", sessionId=key, message=f"Session {key} has been deleted")

    async def on_ping(self, data: Dict[str, Any]):
        self.send("pong", timestamp=time.time())


def _session_id(data: Dict[str, Any], action: str) -> str:
    key = data.get("sessionId")
    if not isinstance(key, str) or not key:
        raise ValueError(f"Session ID is required to {action} session")
    return key


def create_app(settings: Settings, client: Optional[CompletionClient] = None) -> FastAPI:
    """Build the chat app; one completion client and tool registry serve every connection."""
    client = client or CompletionClient(settings)
    settings.workspace.mkdir(parents=True, exist_ok=True)
    sessions = SessionManager(settings.session_dir)
    tools = build_registry(settings)
    context = ContextBuilder(settings.workspace, settings.system_prompt)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await client.aclose()

    app = FastAPI(title="roxy", lifespan=lifespan)

    @app.get("/", response_class=HTMLResponse)
    async def index():
        return INDEX_HTML

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.websocket("/ws")
    async def chat(websocket: WebSocket):
        await websocket.accept()
        connection = ChatConnection(websocket, settings, client, tools, context, sessions)
        logger.info("Client connected with session %s", connection.session.key)
        sender = asyncio.create_task(connection.pump())
        connection.send("connected", sessionId=connection.session.key)
        try:
            while True:
                await connection.handle(await websocket.receive_text())
        except WebSocketDisconnect:
            logger.info("Client disconnected from session %s", connection.session.key)
        finally:
            sender.cancel()
            await asyncio.gather(sender, return_exceptions=True)

    return app
