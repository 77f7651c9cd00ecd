"""FastAPI routes for synchronized playback sessions."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, HTTPException, Query, Request
from pydantic import BaseModel

from controllers.stream_controller import get_status, open_sync_stream, request_join, start_session, update_session

router = APIRouter()


class UpdatePayload(BaseModel):
	token: Optional[str] = None
	data: Optional[Dict[str, Any]] = None
	force: bool = False


@router.get("/status")
async def status_route(request: Request):
	return await get_status(request)


@router.post("/start")
async def start_route(request: Request, payload: Optional[Dict[str, Any]] = Body(None)):
	"""Create a session from the posted initial state and return its token."""
	try:
		return await start_session(request, payload)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.get("/sync")
async def sync_route(request: Request, token: Optional[str] = Query(None)):
	"""Open the server-sent-events stream for the session in `token`."""
	try:
		return await open_sync_stream(request, token)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.post("/update")
async def update_route(request: Request, payload: UpdatePayload):
	try:
		return await update_session(request, payload.token, payload.data, payload.force)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.get("/request_join")
async def request_join_route(
	request: Request,
	token: Optional[str] = Query(None),
	client_id: Optional[str] = Query(None, alias="clientId"),
):
	try:
		return await request_join(request, token, client_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail="Internal server error") from exc
