"""
History API endpoints

Saved covers, newest first.
"""

from fastapi import APIRouter, HTTPException, Request

from web.backend.models.cover import HistoryListResponse, HistoryRecord

router = APIRouter()


@router.get("/", response_model=HistoryListResponse, response_model_by_alias=True)
async def list_history(request: Request):
    records = request.app.state.history.list()
    return HistoryListResponse(success=True, records=records, total=len(records))


@router.post("/", response_model=HistoryRecord, response_model_by_alias=True)
async def save_cover(record: HistoryRecord, request: Request):
    """
    Save a cover to history.

    The id and creation time are assigned here; the oldest records are
    dropped once the history is full.
    """
    return request.app.state.history.add(record)


@router.get("/{record_id}", response_model=HistoryRecord, response_model_by_alias=True)
async def get_cover(record_id: str, request: Request):
    record = request.app.state.history.get(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Cover not found")
    return record


@router.delete("/{record_id}")
async def delete_cover(record_id: str, request: Request):
    if not request.app.state.history.delete(record_id):
        raise HTTPException(status_code=404, detail="Cover not found")
    return {"success": True, "message": "Cover deleted successfully"}


@router.delete("/")
async def clear_history(request: Request):
    request.app.state.history.clear()
    return {"success": True, "message": "History cleared"}
