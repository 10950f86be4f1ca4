from __future__ import annotations
import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Set

from dotenv import load_dotenv
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from squatcoach.counter.session import ACTIVE_MANAGER
from squatcoach.runtime.schemas import LandmarkMessage, ResetMessage

load_dotenv()

HOST = os.getenv("SQUATCOACH_HOST", "0.0.0.0")
PORT = int(os.getenv("SQUATCOACH_PORT", "8000"))
DEBUG = os.getenv("SQUATCOACH_DEBUG", "0") == "1"

logging.basicConfig(level=logging.DEBUG if DEBUG else logging.INFO)
logger = logging.getLogger("squatcoach")

WS_CLIENTS: Set[WebSocket] = set()
_LOOP: asyncio.AbstractEventLoop | None = None
# broadcast tasks scheduled from the loop thread; held until done
_BACKGROUND: Set[asyncio.Task] = set()


async def broadcast(obj: dict):
    dead = []
    for ws in list(WS_CLIENTS):
        try:
            await ws.send_text(json.dumps(obj))
        except Exception:
            dead.append(ws)
    for d in dead:
        WS_CLIENTS.discard(d)


# manager events (reps, warnings, traces) go out to every WS client;
# expiry timers run on their own threads, so hop back onto the loop
def _sink(ev: dict):
    if _LOOP is None or not WS_CLIENTS:
        return
    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None
    if running is _LOOP:
        task = _LOOP.create_task(broadcast(ev))
        _BACKGROUND.add(task)
        task.add_done_callback(_BACKGROUND.discard)
    else:
        asyncio.run_coroutine_threadsafe(broadcast(ev), _LOOP)

ACTIVE_MANAGER().set_event_sink(_sink)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    global _LOOP
    _LOOP = asyncio.get_running_loop()
    try:
        yield
    finally:
        ACTIVE_MANAGER().close()
        _LOOP = None


app = FastAPI(title="Squat Coach", version="0.1.0", lifespan=lifespan)


@app.get("/favicon.ico")
async def favicon():
    return Response(status_code=204)

@app.get("/health")
async def health():
    return {"status": "ok"}

@app.get("/sessions/current")
async def current():
    return JSONResponse(ACTIVE_MANAGER().status().to_dict())

@app.post("/counter/reset")
async def reset():
    return JSONResponse(ACTIVE_MANAGER().reset().to_dict())


@app.websocket("/ws/landmarks")
async def ws_landmarks(ws: WebSocket):
    await ws.accept()
    WS_CLIENTS.add(ws)
    logger.info("ws: client connected (%d total)", len(WS_CLIENTS))
    try:
        while True:
            raw = await ws.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as exc:
                await ws.send_text(json.dumps({"type": "error", "detail": f"invalid JSON: {exc}"}))
                continue

            kind = data.get("type") if isinstance(data, dict) else None
            try:
                if kind == "reset":
                    ResetMessage.model_validate(data)
                    result = ACTIVE_MANAGER().reset()
                elif kind == "landmarks":
                    msg = LandmarkMessage.model_validate(data)
                    result = ACTIVE_MANAGER().process_frame(msg.to_frame())
                else:
                    await ws.send_text(json.dumps({"type": "error", "detail": f"unknown message type: {kind!r}"}))
                    continue
            except ValidationError as exc:
                detail = exc.errors(include_url=False, include_input=False)
                await ws.send_text(json.dumps({"type": "error", "detail": detail}, default=str))
                continue

            await ws.send_text(json.dumps({"type": "state", **result.to_dict()}))
    except WebSocketDisconnect:
        pass
    finally:
        WS_CLIENTS.discard(ws)
        logger.info("ws: client closed (%d left)", len(WS_CLIENTS))


def main():
    import uvicorn
    uvicorn.run("squatcoach.runtime.server:app", host=HOST, port=PORT, log_level="debug" if DEBUG else "info")


if __name__ == "__main__":
    main()
