"""Offline action queue API routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from ..clients.backend_client import BackendClient
from ..schemas import (
    ActionResultResponse,
    DrainSummaryResponse,
    EnqueueRequest,
    EnqueueResponse,
    MessageSendRequest,
    QueuedActionResponse,
    QueueSnapshotResponse,
    QueueStatusResponse,
)
from ..services.enhanced_actions import enhanced_message_send
from ..services.offline_context import OfflineContext
from .deps import get_backend_client, get_offline_context

router = APIRouter(prefix="/offline", tags=["offline"])


def _status_response(context: OfflineContext) -> QueueStatusResponse:
    snapshot = context.queue.status()
    return QueueStatusResponse(
        total=snapshot.total,
        by_priority=snapshot.by_priority,
        oldest_timestamp=snapshot.oldest_timestamp,
    )


@router.post("/queue", response_model=EnqueueResponse, status_code=status.HTTP_201_CREATED)
async def enqueue_action(
    payload: EnqueueRequest,
    context: OfflineContext = Depends(get_offline_context),
) -> EnqueueResponse:
    action_id = await context.queue_offline_action(
        payload.type,
        payload.payload,
        payload.priority,
        payload.max_retries,
        dedupe=payload.dedupe,
    )
    return EnqueueResponse(id=action_id, online=context.monitor.is_online())


@router.get("/queue", response_model=QueueSnapshotResponse)
async def read_queue(context: OfflineContext = Depends(get_offline_context)) -> QueueSnapshotResponse:
    actions = [
        QueuedActionResponse(
            id=action.id,
            type=action.type,
            payload=action.payload,
            timestamp=action.timestamp,
            retry_count=action.retry_count,
            max_retries=action.max_retries,
            priority=action.priority.value,
        )
        for action in context.queue.actions()
    ]
    return QueueSnapshotResponse(
        status=_status_response(context),
        actions=actions,
        draining=context.processor.is_draining,
    )


@router.post("/queue/drain", response_model=DrainSummaryResponse)
async def drain_queue(context: OfflineContext = Depends(get_offline_context)) -> DrainSummaryResponse:
    summary = await context.processor.process()
    return DrainSummaryResponse(
        attempted=summary.attempted,
        succeeded=summary.succeeded,
        failed=summary.failed,
        dropped=summary.dropped,
        unhandled=summary.unhandled,
        timed_out=summary.timed_out,
        skipped_reason=summary.skipped_reason,
    )


@router.delete("/queue", status_code=status.HTTP_204_NO_CONTENT)
async def clear_queue(context: OfflineContext = Depends(get_offline_context)) -> Response:
    await context.queue.clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/messages", response_model=ActionResultResponse)
async def send_message(
    payload: MessageSendRequest,
    context: OfflineContext = Depends(get_offline_context),
    client: BackendClient = Depends(get_backend_client),
) -> ActionResultResponse:
    """Send a chat message now, or queue it with high priority while offline."""

    async def _send(content: str, conversation_id: str, sender_id: str) -> dict:
        return await client.send_message(conversation_id=conversation_id, sender_id=sender_id, content=content)

    result = await enhanced_message_send(context, payload.content, payload.conversation_id, payload.sender_id, _send)
    return ActionResultResponse(
        success=result.success,
        queued=result.queued,
        action_id=result.action_id,
        error=result.error,
        data=result.data,
    )


__all__ = ["router"]
