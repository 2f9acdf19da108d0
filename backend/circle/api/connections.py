"""REST surface for circle connections."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from circle.domain.connections import schemas
from circle.domain.connections.service import ConnectionService
from circle.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/connections")

connection_service = ConnectionService()


@router.post("/request", response_model=schemas.ConnectionCreated, status_code=status.HTTP_201_CREATED)
async def request_connection(
	payload: schemas.ConnectionRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.ConnectionCreated:
	connection = await connection_service.request_connection(
		auth_user.id,
		target_user_id=payload.target_user_id,
		invite_token=payload.invite_token,
		connection_type=payload.type,
	)
	return schemas.created_payload(connection)


@router.post("/{connection_id}/accept", response_model=schemas.ConnectionAccepted)
async def accept_connection(
	connection_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.ConnectionAccepted:
	connection = await connection_service.accept_connection(connection_id, auth_user.id)
	return schemas.accepted_payload(connection)


@router.post("/{connection_id}/remove", response_model=schemas.ConnectionRemoved)
async def remove_connection(
	connection_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.ConnectionRemoved:
	await connection_service.remove_connection(connection_id, auth_user.id)
	return schemas.ConnectionRemoved(success=True)


@router.post("/{connection_id}/reconfirm", response_model=schemas.ConnectionReconfirmed)
async def reconfirm_connection(
	connection_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.ConnectionReconfirmed:
	connection, renewed = await connection_service.reconfirm_connection(connection_id, auth_user.id)
	return schemas.ConnectionReconfirmed(
		connection_id=connection.id,
		renewed=renewed,
		expires_at=connection.expires_at,
	)


@router.get("", response_model=schemas.ActiveConnectionList)
async def list_active(auth_user: AuthenticatedUser = Depends(get_current_user)) -> schemas.ActiveConnectionList:
	peers = await connection_service.list_active(auth_user.id)
	rows = [schemas.active_summary(peer, auth_user.id) for peer in peers]
	return schemas.ActiveConnectionList(connections=rows, count=len(rows))


@router.get("/pending", response_model=schemas.PendingConnectionList)
async def list_pending(auth_user: AuthenticatedUser = Depends(get_current_user)) -> schemas.PendingConnectionList:
	peers = await connection_service.list_pending(auth_user.id)
	rows = [schemas.pending_summary(peer, auth_user.id) for peer in peers]
	return schemas.PendingConnectionList(connections=rows, count=len(rows))
