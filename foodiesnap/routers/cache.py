"""Offline cache routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ..schemas import CacheEntryResponse, CacheWriteRequest
from ..services.offline_context import OfflineContext
from .deps import get_offline_context

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/{key}", response_model=CacheEntryResponse)
async def read_cache_entry(key: str, context: OfflineContext = Depends(get_offline_context)) -> CacheEntryResponse:
    data = await context.cache.get(key)
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cache entry not found or expired")
    return CacheEntryResponse(key=key, data=data)


@router.put("/{key}", response_model=CacheEntryResponse)
async def write_cache_entry(
    key: str,
    payload: CacheWriteRequest,
    context: OfflineContext = Depends(get_offline_context),
) -> CacheEntryResponse:
    await context.cache.set(key, payload.data, payload.ttl)
    return CacheEntryResponse(key=key, data=payload.data)


@router.delete("/{key}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_cache_entry(key: str, context: OfflineContext = Depends(get_offline_context)) -> Response:
    if not await context.cache.remove(key):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cache entry not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
