"""
WebSocket Routes for Real-time Execution Streaming.

Streams every run log entry and every live output while a flow executes.
"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError
import asyncio
import logging

from nodeflow.api.routes.flows import run_snapshot
from nodeflow.api.schemas import FlowRunRequest
from nodeflow.engine.context import LogEntry
from nodeflow.engine.graph import FlowGraph


logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws/run")
async def websocket_run(websocket: WebSocket):
    """
    WebSocket endpoint for real-time flow execution.

    Message format (client -> server):
    ```json
    {"action": "start", "nodes": [...], "edges": [...], "start_node_id": "button-1"}
    ```

    Messages (server -> client), in order:
    ```json
    {"type": "started", "start_node_id": "button-1"}
    {"type": "log", "timestamp": "...", "node_id": "if-1", "message": "...", "data": {...}}
    {"type": "live_output", "node_id": "output-1", "value": "..."}
    {"type": "completed", "run_id": "...", "status": "COMPLETED", "duration_ms": 12.5}
    ```
    """
    await websocket.accept()

    try:
        data = await websocket.receive_json()

        if data.get("action") != "start":
            await websocket.send_json({
                "type": "error",
                "error": "Expected 'start' action"
            })
            return

        try:
            request = FlowRunRequest.model_validate(data)
        except ValidationError as e:
            await websocket.send_json({
                "type": "error",
                "error": "Invalid flow",
                "detail": jsonable_encoder(e.errors()),
            })
            return

        graph = FlowGraph(request.nodes, request.edges)
        start = request.start_node_id or graph.find_default_start_node()
        if not start:
            await websocket.send_json({
                "type": "error",
                "error": "No start_node_id given and no Button node found",
            })
            return

        await websocket.send_json({"type": "started", "start_node_id": start})

        # Engine callbacks are synchronous; a sender task drains the queue
        outbox: "asyncio.Queue[Optional[Dict[str, Any]]]" = asyncio.Queue()

        def on_log(entry: LogEntry) -> None:
            outbox.put_nowait({"type": "log", **entry.to_dict()})

        def on_live_output(node_id: str, value: Any) -> None:
            outbox.put_nowait({"type": "live_output", "node_id": node_id, "value": value})

        async def sender() -> None:
            while True:
                message = await outbox.get()
                if message is None:
                    break
                await websocket.send_json(jsonable_encoder(message))

        sender_task = asyncio.create_task(sender())
        try:
            context, _ = await run_snapshot(
                request,
                start,
                timeout=request.timeout_seconds,
                on_log=on_log,
                on_live_output=on_live_output,
            )
        finally:
            outbox.put_nowait(None)
            await sender_task

        await websocket.send_json({
            "type": "completed",
            "run_id": context.run_id,
            "status": context.status.value,
            "duration_ms": context.duration_ms,
        })

    except WebSocketDisconnect:
        logger.info("Client disconnected from flow run")
    except Exception as e:
        logger.exception(f"WebSocket error: {e}")
        try:
            await websocket.send_json({
                "type": "error",
                "error": str(e),
            })
        except Exception:
            logger.debug("Could not report error to a closed WebSocket")
    finally:
        try:
            await websocket.close()
        except Exception:
            logger.debug("WebSocket already closed")
