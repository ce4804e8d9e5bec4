"""Infrastructure setup endpoints.

POST /setup runs a session and returns the final result. POST /setup/stream
runs the same session as a server-sent event stream: one `progress` event
per step transition followed by a single `result` event (or `error` when
the session could not start).
"""

import asyncio
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from containerflow.api.dependencies import get_runtime
from containerflow.api.v1.schemas import SetupRequest
from containerflow.errors import OperationInProgressError, StackError
from containerflow.logging_schema import LogEvent
from containerflow.stack import StackRuntime
from containerflow.stack.setup import ProgressEvent, SetupResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/setup", tags=["setup"])


def _sse(event: str, data: str) -> str:
    return f"event: {event}\ndata: {data}\n\n"


@router.post("", response_model=SetupResult)
async def run_setup(
    request: SetupRequest,
    runtime: StackRuntime = Depends(get_runtime),
) -> SetupResult:
    """Provision network, reverse proxy and database."""
    return await runtime.run_setup(force=request.force)


@router.post("/stream")
async def stream_setup(
    request: SetupRequest,
    runtime: StackRuntime = Depends(get_runtime),
) -> StreamingResponse:
    """Provision the stack, streaming step transitions as they happen.

    The session runs in its own task so a disconnecting client does not
    interrupt a step halfway.
    """
    if runtime.guard.active is not None:
        raise OperationInProgressError(runtime.guard.active)

    queue: asyncio.Queue[str | None] = asyncio.Queue()

    def on_progress(event: ProgressEvent) -> None:
        queue.put_nowait(_sse("progress", event.model_dump_json()))

    async def run() -> None:
        try:
            result = await runtime.run_setup(force=request.force, progress=on_progress)
            queue.put_nowait(_sse("result", result.model_dump_json()))
        except StackError as exc:
            queue.put_nowait(_sse("error", exc.to_response().model_dump_json()))
        except Exception:
            logger.exception(
                "Setup stream failed",
                extra={"event": LogEvent.BACKGROUND_TASK_FAILED, "operation": "setup"},
            )
            queue.put_nowait(
                _sse("error", '{"error": {"code": "INTERNAL", "message": "Internal server error"}}')
            )
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(run())

    async def events() -> AsyncIterator[str]:
        while True:
            item = await queue.get()
            if item is None:
                break
            yield item
        await task

    return StreamingResponse(events(), media_type="text/event-stream")
