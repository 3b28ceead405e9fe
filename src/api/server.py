"""
Mini Task Scheduler — REST API.

Plain CRUD over the task store plus the in-app reminder endpoints the web
client polls. Runs in a background thread next to the asyncio loop; every
read-modify-write holds the store lock.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict
from typing import TYPE_CHECKING, Any, Callable

from flask import Flask, jsonify, request
from pydantic import ValidationError
from werkzeug.serving import make_server

from src.api.schemas import SnoozeRequest, TaskCreate, TaskUpdate
from src.core import lifecycle
from src.core.stats import compute_stats
from src.data.models import ActionType, NotificationAction, Task, TaskStatus
from src.ports.store_port import TaskStoreError

if TYPE_CHECKING:
    from src.adapters.modal_board import ModalBoard
    from src.core.action_handler import ActionHandler
    from src.ports.clock_port import Clock
    from src.ports.store_port import TaskStorePort

logger = logging.getLogger(__name__)


def _validation_failed(exc: ValidationError):
    details = [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return jsonify({"error": "Validation failed", "details": details}), 400


def _not_found():
    return jsonify({"message": "Not found"}), 404


def create_api(
    store: TaskStorePort,
    actions: ActionHandler,
    modals: ModalBoard,
    clock: Clock,
    dispatch: Callable[[Task], Any] | None = None,
) -> Flask:
    """Build the Flask app with all routes bound to the given collaborators.

    ``dispatch`` hands a task to every notification channel and must be safe
    to call from the API thread. Without it, test reminders only open a modal.
    """
    app = Flask(__name__)
    started = time.monotonic()

    @app.errorhandler(404)
    def _handle_404(_exc):
        return _not_found()

    @app.errorhandler(TaskStoreError)
    def _handle_store_error(exc: TaskStoreError):
        logger.error("Task store unavailable: %s", exc)
        return jsonify({"error": "Task store unavailable"}), 503

    # -- health -----------------------------------------------------------

    @app.get("/api/health")
    def health():
        return jsonify({
            "status": "ok",
            "uptime": round(time.monotonic() - started, 3),
            "timestamp": clock.now().isoformat(),
        })

    # -- tasks ------------------------------------------------------------

    @app.get("/api/tasks")
    def list_tasks():
        return jsonify([t.to_dict() for t in store.list_tasks()])

    @app.post("/api/tasks")
    def create_task():
        try:
            body = TaskCreate.model_validate(request.get_json(silent=True) or {})
        except ValidationError as exc:
            return _validation_failed(exc)

        task = store.add_task(
            title=body.title,
            scheduled_time=body.scheduled_time,
            priority=body.priority,
            mood=body.mood,
            deadline=body.deadline,
        )
        return jsonify(task.to_dict()), 201

    @app.get("/api/tasks/<int:task_id>")
    def get_task(task_id: int):
        task = store.get_task(task_id)
        if task is None:
            return _not_found()
        return jsonify(task.to_dict())

    @app.put("/api/tasks/<int:task_id>")
    def update_task(task_id: int):
        try:
            body = TaskUpdate.model_validate(request.get_json(silent=True) or {})
        except ValidationError as exc:
            return _validation_failed(exc)

        with store.locked():
            task = store.get_task(task_id)
            if task is None:
                return _not_found()
            was_completed = task.status == TaskStatus.COMPLETED
            lifecycle.apply_update(task, body.model_dump(exclude_unset=True), clock.now())
            store.replace_task(task)

        if task.status == TaskStatus.COMPLETED and not was_completed:
            actions.schedule_removal(task_id)
            modals.close(task_id)
        logger.info("Task #%d updated via API", task_id)
        return jsonify(task.to_dict())

    @app.delete("/api/tasks/<int:task_id>")
    def delete_task(task_id: int):
        store.delete_task(task_id)
        modals.close(task_id)
        return "", 204

    @app.get("/api/history")
    def history():
        return jsonify([t.to_dict() for t in store.list_history()])

    @app.get("/api/stats")
    def stats():
        return jsonify(asdict(compute_stats(store.list_tasks(), store.list_history())))

    # -- in-app reminders -------------------------------------------------

    @app.get("/api/notifications")
    def list_notifications():
        return jsonify([m.to_dict() for m in modals.active()])

    @app.post("/api/notifications/test")
    def test_notification():
        now = clock.now()
        sample = Task(
            id=0,
            title="Test notification",
            scheduled_time=now.strftime("%H:%M"),
            notified=True,
            created_at=now.isoformat(),
        )
        if dispatch is not None:
            dispatch(sample)
        else:
            modals.open(sample)
        logger.info("Test reminder sent")
        return jsonify({"ok": True, "task": sample.to_dict()}), 202

    @app.post("/api/notifications/<int:task_id>/<action>")
    def notification_action(task_id: int, action: str):
        try:
            action_type = ActionType(action)
        except ValueError:
            return jsonify({"error": f"Unknown action {action!r}"}), 400

        try:
            body = SnoozeRequest.model_validate(request.get_json(silent=True) or {})
        except ValidationError as exc:
            return _validation_failed(exc)

        if store.get_task(task_id) is None:
            modals.close(task_id)
            return _not_found()

        result = actions.handle(NotificationAction(
            type=action_type,
            task_id=task_id,
            snooze_minutes=body.minutes if action_type == ActionType.SNOOZE else None,
        ))
        return jsonify({"ok": True, "task": result.to_dict() if result else None})

    return app


class ApiServer:
    """Serves the Flask app from a background thread until stop() is called."""

    def __init__(self, app: Flask, host: str, port: int) -> None:
        self._server = make_server(host, port, app, threaded=True)
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="api-server", daemon=True,
        )
        self.host = host
        self.port = self._server.server_port

    def start(self) -> None:
        self._thread.start()
        logger.info("REST API listening on http://%s:%d", self.host, self.port)

    def stop(self, timeout: float = 5.0) -> None:
        self._server.shutdown()
        self._thread.join(timeout=timeout)
        logger.info("REST API stopped")
