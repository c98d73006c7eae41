"""
Live update WebSocket endpoints.

Each socket receives the full current list on connect and again after
every relevant change, until the client disconnects. The bearer token is
passed as the `token` query parameter.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import async_sessionmaker

from ambulance_backend.app.db.session import get_session_factory
from ambulance_backend.app.models.enums import HOSPITAL_ROLES
from ambulance_backend.app.schemas.ambulance import AmbulanceResponse
from ambulance_backend.app.schemas.driver import DriverResponse
from ambulance_backend.app.core.dependencies import authenticate_token
from ambulance_backend.app.core.guards import check_role, require_driver_access, HospitalGuard
from ambulance_backend.app.services import driver_directory
from ambulance_backend.app.services.assignment_ledger import watch_assigned_ambulances
from ambulance_backend.app.services.ambulance_registry import AmbulanceRegistry

router = APIRouter(prefix="/live", tags=["Live Updates"])
hospital_guard = HospitalGuard()
logger = logging.getLogger(__name__)


async def _authorize(
    websocket: WebSocket,
    session_factory: async_sessionmaker,
    token: Optional[str],
    check: Callable[[dict], None]
) -> bool:
    """Authenticate the socket; close it with a policy violation on failure."""
    try:
        async with session_factory() as db:
            current_user = await authenticate_token(token, db)
        check(current_user)
    except HTTPException as exc:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(exc.detail))
        return False
    return True


async def _pump(websocket: WebSocket, stream, serialize: Callable[[object], List[dict]]) -> None:
    """
    Forward stream snapshots to the socket until either side ends.

    Client messages are read and ignored so a disconnect is noticed even
    while the stream is idle.
    """
    await websocket.accept()

    async def send():
        try:
            async for snapshot in stream:
                await websocket.send_json(jsonable_encoder(serialize(snapshot)))
        except WebSocketDisconnect:
            logger.debug("Live client went away during send on %s", websocket.url.path)

    async def receive():
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.debug("Live client disconnected from %s", websocket.url.path)

    sender = asyncio.create_task(send())
    receiver = asyncio.create_task(receive())
    done, pending = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)
    await stream.aclose()

    if sender in done:
        sender.result()


def _hospital_check(hospital_id: str) -> Callable[[dict], None]:
    def check(current_user: dict) -> None:
        check_role(current_user, HOSPITAL_ROLES)
        hospital_guard.enforce(hospital_id, current_user, "hospital")
    return check


def _drivers(drivers) -> List[dict]:
    return [DriverResponse.from_user(d).model_dump() for d in drivers]


def _ambulances(ambulances) -> List[dict]:
    return [AmbulanceResponse.model_validate(a).model_dump() for a in ambulances]


@router.websocket("/hospitals/{hospital_id}/drivers")
async def live_drivers(
    websocket: WebSocket,
    hospital_id: str,
    token: Optional[str] = Query(None),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    if await _authorize(websocket, session_factory, token, _hospital_check(hospital_id)):
        await _pump(websocket, driver_directory.watch_drivers_for_hospital(hospital_id, session_factory), _drivers)


@router.websocket("/hospitals/{hospital_id}/drivers/available")
async def live_available_drivers(
    websocket: WebSocket,
    hospital_id: str,
    token: Optional[str] = Query(None),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    if await _authorize(websocket, session_factory, token, _hospital_check(hospital_id)):
        await _pump(websocket, driver_directory.watch_available_drivers(hospital_id, session_factory), _drivers)


@router.websocket("/hospitals/{hospital_id}/ambulances")
async def live_ambulances(
    websocket: WebSocket,
    hospital_id: str,
    token: Optional[str] = Query(None),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    if await _authorize(websocket, session_factory, token, _hospital_check(hospital_id)):
        await _pump(websocket, AmbulanceRegistry.watch_ambulances(hospital_id, session_factory), _ambulances)


@router.websocket("/drivers/{driver_id}/ambulances")
async def live_driver_ambulances(
    websocket: WebSocket,
    driver_id: str,
    token: Optional[str] = Query(None),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    if await _authorize(websocket, session_factory, token, lambda user: require_driver_access(driver_id, user)):
        await _pump(websocket, watch_assigned_ambulances(driver_id, session_factory), _ambulances)
