"""
main.py
───────
Reminders: FastAPI backend entry point.

Exposes:
  REST  /api/reminders                       CRUD + list view
  REST  /api/reminders/{id}/toggle           activate / deactivate
  REST  /api/reminders/arm | /disarm         (re)arm or pause all countdowns
  REST  /api/reminders/{id}/tasks            checklist attached to a reminder
  REST  /api/notifications/permission        notification permission prompt
  REST  /api/status, /api/health
  WS    /ws                                  real-time push of fired reminders
"""

import os
import asyncio
import logging
import platform
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from reminders.config import Settings, get_settings
from reminders.models import (
    PermissionUpdate, Reminder, ReminderCreate, ReminderUpdate, ReminderView,
    TaskCreate, TaskUpdate, ToggleRequest,
)
from reminders.notifier import Notifier
from reminders.scheduler import Scheduler
from reminders.storage import ReminderStore

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level,
)
logger = logging.getLogger(__name__)


# ── WebSocket connection registry ─────────────────────────────────────────────

class ConnectionManager:
    def __init__(self):
        self.active: List[WebSocket] = []
        self._lock = asyncio.Lock()

    async def connect(self, ws: WebSocket):
        await ws.accept()
        async with self._lock:
            self.active.append(ws)

    async def disconnect(self, ws: WebSocket):
        async with self._lock:
            self.active = [c for c in self.active if c is not ws]

    async def broadcast(self, data: dict):
        async with self._lock:
            dead = []
            for ws in self.active:
                try:
                    await ws.send_json(data)
                except Exception:
                    logger.debug("Dropping dead WebSocket client")
                    dead.append(ws)
            self.active = [c for c in self.active if c not in dead]


# ── Dependencies ──────────────────────────────────────────────────────────────

def get_scheduler(request: Request) -> Scheduler:
    return request.app.state.scheduler


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def _found(reminder: Optional[Reminder]) -> Reminder:
    if not reminder:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return reminder


router = APIRouter()


# ── Reminder endpoints ────────────────────────────────────────────────────────

@router.get("/api/reminders", response_model=list[Reminder])
def list_reminders(scheduler: Scheduler = Depends(get_scheduler)):
    return scheduler.get_all()


@router.get("/api/reminders/view", response_model=list[ReminderView])
def view_reminders(scheduler: Scheduler = Depends(get_scheduler)):
    """List-load surface: re-arms anything idle, then reports live countdowns."""
    scheduler.arm_all()
    return scheduler.views()


@router.post("/api/reminders", response_model=Reminder, status_code=201)
def create_reminder(body: ReminderCreate, scheduler: Scheduler = Depends(get_scheduler)):
    return scheduler.create(body)


@router.post("/api/reminders/arm")
def arm_reminders(scheduler: Scheduler = Depends(get_scheduler)):
    return {"armed": scheduler.arm_all()}


@router.post("/api/reminders/disarm", status_code=204)
def disarm_reminders(scheduler: Scheduler = Depends(get_scheduler)):
    scheduler.disarm_all()


@router.get("/api/reminders/{reminder_id}", response_model=Reminder)
def get_reminder(reminder_id: str, scheduler: Scheduler = Depends(get_scheduler)):
    return _found(scheduler.get(reminder_id))


@router.patch("/api/reminders/{reminder_id}", response_model=Reminder)
def update_reminder(reminder_id: str, body: ReminderUpdate,
                    scheduler: Scheduler = Depends(get_scheduler)):
    return _found(scheduler.update(reminder_id, **body.model_dump(exclude_unset=True)))


@router.delete("/api/reminders/{reminder_id}", status_code=204)
def delete_reminder(reminder_id: str, scheduler: Scheduler = Depends(get_scheduler)):
    if not scheduler.remove(reminder_id):
        raise HTTPException(status_code=404, detail="Reminder not found")


@router.post("/api/reminders/{reminder_id}/toggle", response_model=Reminder)
def toggle_reminder(reminder_id: str, body: ToggleRequest,
                    scheduler: Scheduler = Depends(get_scheduler)):
    return _found(scheduler.toggle_active(reminder_id, body.active))


# ── Checklist endpoints ───────────────────────────────────────────────────────

@router.post("/api/reminders/{reminder_id}/tasks", response_model=Reminder, status_code=201)
def add_task(reminder_id: str, body: TaskCreate, scheduler: Scheduler = Depends(get_scheduler)):
    return _found(scheduler.add_task(reminder_id, body.name))


@router.patch("/api/reminders/{reminder_id}/tasks/{index}", response_model=Reminder)
def update_task(reminder_id: str, index: int, body: TaskUpdate,
                scheduler: Scheduler = Depends(get_scheduler)):
    reminder = scheduler.set_task_completed(reminder_id, index, body.is_completed)
    if not reminder:
        raise HTTPException(status_code=404, detail="Task not found")
    return reminder


@router.delete("/api/reminders/{reminder_id}/tasks/{index}", response_model=Reminder)
def delete_task(reminder_id: str, index: int, scheduler: Scheduler = Depends(get_scheduler)):
    reminder = scheduler.remove_task(reminder_id, index)
    if not reminder:
        raise HTTPException(status_code=404, detail="Task not found")
    return reminder


# ── Notification permission ───────────────────────────────────────────────────

@router.get("/api/notifications/permission")
def get_permission(notifier: Notifier = Depends(get_notifier)):
    return {"status": notifier.permission_status.value}


@router.post("/api/notifications/permission")
def set_permission(body: PermissionUpdate, notifier: Notifier = Depends(get_notifier)):
    notifier.set_permission(body.granted)
    return {"status": notifier.permission_status.value}


# ── Health / info ─────────────────────────────────────────────────────────────

@router.get("/api/status")
def status(scheduler: Scheduler = Depends(get_scheduler)):
    return scheduler.status()


@router.get("/api/health")
def health():
    return {
        "status": "ok",
        "pid": os.getpid(),
        "platform": platform.system(),
        "python": platform.python_version(),
    }


# ── App factory ───────────────────────────────────────────────────────────────

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    ws_manager = ConnectionManager()
    loop_ref = {}

    def _on_fire(reminder_id: str, title: str, body: str):
        """Called by the Scheduler (on the tick thread) when a reminder elapses."""
        loop = loop_ref.get("loop")
        if loop is None or loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(
            ws_manager.broadcast({
                "event": "reminder_fired",
                "reminder_id": reminder_id,
                "title": title,
                "body": body,
            }),
            loop
        )

    notifier = Notifier(
        on_fire=_on_fire,
        default_grant=settings.notification_permission == "grant",
        desktop=settings.desktop_notifications,
    )
    scheduler = Scheduler(
        ReminderStore(settings.reminders_file),
        notifier,
        tick_seconds=settings.tick_seconds,
        toggle_off_scope=settings.toggle_off_scope,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        loop_ref["loop"] = asyncio.get_running_loop()
        logger.info("[REMINDERS] PID=%s | Platform=%s | data=%s",
                    os.getpid(), platform.system(), settings.reminders_file)
        scheduler.open()

        yield   # Application runs here

        scheduler.close()
        loop_ref.pop("loop", None)
        logger.info("[REMINDERS] Shutdown complete.")

    app = FastAPI(title="Reminders", version="1.0.0", lifespan=lifespan)
    app.state.scheduler = scheduler
    app.state.notifier  = notifier

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],    # Dev: allow all; restrict in production
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket):
        await ws_manager.connect(ws)
        try:
            while True:
                data = await ws.receive_json()
                # Handle ping keepalive
                if data.get("type") == "ping":
                    await ws.send_json({"type": "pong"})
        except WebSocketDisconnect:
            await ws_manager.disconnect(ws)

    return app


app = create_app()


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("reminders.main:app", host="0.0.0.0", port=8000)
