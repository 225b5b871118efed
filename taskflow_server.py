#!/usr/bin/env python3
"""
TaskFlow Server
---------------
Serves the TaskFlow web UI and a JSON API over the per-session task store.

Usage:
    python taskflow_server.py
    python taskflow_server.py --config taskflow.yaml --port 3000

Backend:
    remote  Supabase tables + auth (TASKFLOW_SUPABASE_URL / TASKFLOW_SUPABASE_KEY)
    memory  everything in process memory, lost on restart (default)

API:
    GET    /                       → UI (HTML)
    GET    /health                 → { status, mode, signed_in }
    POST   /api/auth/sign-in       → { user, board }      body: { email, password }
    POST   /api/auth/sign-up       → { user, board }      body: { email, password, username }
    POST   /api/auth/sign-out      → { user: null }
    GET    /api/auth/user          → { user }
    GET    /api/board?view=today   → dashboard for a fragment (all|today|upcoming|project-<id>)
    GET    /api/tasks              → { tasks }
    POST   /api/tasks              → { task }             body: { title, priority, projectId, dueDate }
    PATCH  /api/tasks/<id>         → { task }             body: any task fields
    DELETE /api/tasks/<id>         → { task }
    POST   /api/tasks/<id>/toggle  → { task }
    GET    /api/projects           → { projects }
    POST   /api/projects           → { project }          body: { name, color }
    DELETE /api/projects/<id>      → { project }
    GET    /api/notifications      → { notifications }    (drained on read)
"""

import argparse
import logging
import secrets
import uuid
from pathlib import Path
from collections import OrderedDict
from typing import Optional, Tuple

from flask import Flask, abort, current_app, jsonify, request, session

from taskflow.auth import AuthError, MemoryAuth, SupabaseAuth
from taskflow.config import Config, setup_logging
from taskflow.forms import (
    PRIORITIES,
    ValidationError,
    validate_project_form,
    validate_sign_in,
    validate_sign_up,
    validate_task_form,
    validate_task_update,
)
from taskflow.notify import Notifier
from taskflow.remote import MemoryClient, SupabaseClient
from taskflow.store import ErrorKind, OperationResult, TaskStore
from taskflow.views import dashboard

logger = logging.getLogger(__name__)

UI_FILE = Path(__file__).parent / "taskflow_ui.html"

STATUS_BY_ERROR = {
    ErrorKind.SIGNED_OUT: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.BUSY: 409,
    ErrorKind.INVALID: 400,
    ErrorKind.REMOTE: 502,
    ErrorKind.EMPTY_RESULT: 502,
}


# ── Sessions ─────────────────────────────────────────────────────────────────


class Workspace:
    """One browser session: its auth collaborator, table client and store."""

    def __init__(self, auth, client, notifier: Notifier):
        self.auth = auth
        self.client = client
        self.notifier = notifier
        self.store = TaskStore(client, notifier)


class Backend:
    """
    Builds workspaces for the configured mode and keeps them by session id.

    At most config.max_sessions workspaces are kept; the least recently used
    one is dropped when a new session would exceed that.
    """

    def __init__(self, config: Config):
        self.config = config
        self.mode = config.backend_mode
        self.workspaces: "OrderedDict[str, Workspace]" = OrderedDict()
        # Shared across sessions in memory mode
        self._memory_client = MemoryClient()
        self._accounts: dict = {}

    def new_workspace(self) -> Workspace:
        cfg = self.config
        if self.mode == "remote":
            client = SupabaseClient(cfg.supabase_url, cfg.supabase_key, cfg.request_timeout)
            auth = SupabaseAuth(cfg.supabase_url, cfg.supabase_key, client=client,
                                timeout=cfg.request_timeout)
        else:
            client = self._memory_client
            auth = MemoryAuth(self._accounts)
        return Workspace(auth, client, Notifier())

    def get(self, sid: Optional[str]) -> Optional[Workspace]:
        ws = self.workspaces.get(sid) if sid else None
        if ws is not None:
            self.workspaces.move_to_end(sid)
        return ws

    def open(self) -> Tuple[str, Workspace]:
        while len(self.workspaces) >= self.config.max_sessions:
            evicted, _ = self.workspaces.popitem(last=False)
            logger.info(f"Dropping idle session {evicted[:8]}")
        sid = uuid.uuid4().hex
        self.workspaces[sid] = self.new_workspace()
        return sid, self.workspaces[sid]

    def close(self, sid: Optional[str]) -> None:
        if sid:
            self.workspaces.pop(sid, None)


def _backend() -> Backend:
    return current_app.extensions["taskflow"]


def _workspace() -> Workspace:
    """The session's workspace, opened on first use. Only sign-in and sign-up open one."""
    backend = _backend()
    ws = backend.get(session.get("sid"))
    if ws is None:
        sid, ws = backend.open()
        session["sid"] = sid
    return ws


def _existing_workspace() -> Optional[Workspace]:
    return _backend().get(session.get("sid"))


def _release_if_signed_out(ws: Workspace) -> None:
    """Drop a workspace whose sign-in or sign-up did not start a session."""
    if ws.auth.current_user() is None:
        _backend().close(session.pop("sid", None))


def _session_store() -> TaskStore:
    """
    The session's store, or a throwaway signed-out one.

    The throwaway store has no tasks and the bootstrap projects, and every
    mutation on it resolves as signed_out without a remote call.
    """
    ws = _existing_workspace()
    return ws.store if ws is not None else TaskStore(client=None)


# ── Response helpers ─────────────────────────────────────────────────────────


def _json_body() -> dict:
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else {}


def _result(result: OperationResult, key: str, created: bool = False):
    if result.ok:
        value = result.value.to_json() if result.value is not None else None
        return jsonify({key: value}), 201 if created else 200
    return jsonify({
        "error": result.error.value,
        "message": result.message,
    }), STATUS_BY_ERROR.get(result.error, 500)


def _user_json(ws: Optional[Workspace]):
    user = ws.auth.current_user() if ws is not None else None
    return user.to_json() if user else None


# ── App factory ──────────────────────────────────────────────────────────────


def create_app(config: Optional[Config] = None) -> Flask:
    config = config or Config.load()
    app = Flask(__name__)
    if config.secret_key:
        app.secret_key = config.secret_key
    else:
        app.logger.warning("No secret_key configured; sessions end when the server restarts")
        app.secret_key = secrets.token_hex(32)
    app.extensions["taskflow"] = Backend(config)

    @app.route("/")
    def index():
        if not UI_FILE.exists():
            abort(404, "taskflow_ui.html not found. Place it alongside taskflow_server.py")
        return UI_FILE.read_text(encoding="utf-8")

    @app.route("/health")
    def health():
        ws = _existing_workspace()
        signed_in = bool(ws and ws.auth.current_user())
        return jsonify({"status": "ok", "mode": _backend().mode, "signed_in": signed_in})

    # ── Auth ──

    @app.route("/api/auth/user", methods=["GET"])
    def api_user():
        return jsonify({"user": _user_json(_existing_workspace())})

    @app.route("/api/auth/sign-in", methods=["POST"])
    async def api_sign_in():
        try:
            values = validate_sign_in(_json_body())
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400

        ws = _workspace()
        try:
            user = await ws.auth.sign_in(values["email"], values["password"])
        except AuthError as e:
            app.logger.info(f"Sign-in refused for {values['email']}: {e}")
            _release_if_signed_out(ws)
            return jsonify({"error": str(e)}), 401

        await ws.store.set_user(user)
        return jsonify({"user": user.to_json(), "board": dashboard(ws.store, "all")})

    @app.route("/api/auth/sign-up", methods=["POST"])
    async def api_sign_up():
        try:
            values = validate_sign_up(_json_body())
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400

        ws = _workspace()
        try:
            user = await ws.auth.sign_up(values["email"], values["password"], values["username"])
        except AuthError as e:
            app.logger.info(f"Sign-up refused for {values['email']}: {e}")
            _release_if_signed_out(ws)
            return jsonify({"error": str(e)}), 401

        if user is None:
            _release_if_signed_out(ws)
            return jsonify({
                "user": None,
                "message": "Check your email to confirm your account, then sign in.",
            })
        await ws.store.set_user(user)
        return jsonify({"user": user.to_json(), "board": dashboard(ws.store, "all")})

    @app.route("/api/auth/sign-out", methods=["POST"])
    async def api_sign_out():
        ws = _existing_workspace()
        if ws is not None:
            await ws.auth.sign_out()
            await ws.store.set_user(None)
            _backend().close(session.pop("sid", None))
        return jsonify({"user": None})

    # ── Board ──

    @app.route("/api/board", methods=["GET"])
    def api_board():
        ws = _existing_workspace()
        board = dashboard(_session_store(), request.args.get("view"))
        board["user"] = _user_json(ws)
        return jsonify(board)

    @app.route("/api/notifications", methods=["GET"])
    def api_notifications():
        ws = _existing_workspace()
        notes = ws.notifier.drain() if ws is not None else []
        return jsonify({"notifications": [n.to_json() for n in notes]})

    # ── Tasks ──

    @app.route("/api/tasks", methods=["GET"])
    def api_tasks():
        priority = request.args.get("priority")
        if priority and priority.lower() not in PRIORITIES:
            return jsonify({
                "error": f"Invalid priority: '{priority}'. Allowed: {', '.join(PRIORITIES)}",
            }), 400

        store = _session_store()
        tasks = store.tasks
        if request.args.get("project"):
            tasks = store.get_tasks_by_project(request.args["project"])
        if priority:
            by_priority = store.get_tasks_by_priority(priority)
            tasks = [t for t in tasks if t in by_priority]
        return jsonify({"tasks": [t.to_json() for t in tasks], "count": len(tasks)})

    @app.route("/api/tasks", methods=["POST"])
    async def api_create_task():
        try:
            draft = validate_task_form(_json_body())
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        result = await _session_store().add_task(draft)
        return _result(result, "task", created=True)

    @app.route("/api/tasks/<task_id>", methods=["PATCH"])
    async def api_update_task(task_id):
        try:
            fields = validate_task_update(_json_body())
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        result = await _session_store().update_task(task_id, fields)
        return _result(result, "task")

    @app.route("/api/tasks/<task_id>", methods=["DELETE"])
    async def api_delete_task(task_id):
        result = await _session_store().delete_task(task_id)
        return _result(result, "task")

    @app.route("/api/tasks/<task_id>/toggle", methods=["POST"])
    async def api_toggle_task(task_id):
        result = await _session_store().toggle_task_completion(task_id)
        return _result(result, "task")

    # ── Projects ──

    @app.route("/api/projects", methods=["GET"])
    def api_projects():
        projects = _session_store().projects
        return jsonify({"projects": [p.to_json() for p in projects]})

    @app.route("/api/projects", methods=["POST"])
    async def api_create_project():
        try:
            draft = validate_project_form(_json_body())
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        result = await _session_store().add_project(draft)
        return _result(result, "project", created=True)

    @app.route("/api/projects/<project_id>", methods=["DELETE"])
    async def api_delete_project(project_id):
        result = await _session_store().delete_project(project_id)
        return _result(result, "project")

    return app


# ── Main ─────────────────────────────────────────────────────────────────────


def main():
    parser = argparse.ArgumentParser(description="TaskFlow Server")
    parser.add_argument("--config", help="Path to taskflow.yaml (overrides TASKFLOW_CONFIG)")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int)
    args = parser.parse_args()

    config = Config.load(args.config)
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    setup_logging(config.log_level)

    app = create_app(config)
    logger.info(f"TaskFlow on http://{config.host}:{config.port} (mode: {config.backend_mode})")

    # One thread owns every session's store
    app.run(host=config.host, port=config.port, debug=False, threaded=False)


if __name__ == "__main__":
    main()
