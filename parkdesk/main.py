import uvicorn
import asyncio
from datetime import date
from typing import List, Optional
from fastapi import FastAPI, Depends, HTTPException, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_202_ACCEPTED, HTTP_424_FAILED_DEPENDENCY
import logging

from parkdesk import config
from parkdesk.crud import list_outstanding_charges, mark_charge_collected, record_unsettled_charge, get_charge
from parkdesk.dashboard import DashboardFeed
from parkdesk.database import init_db, get_db
from parkdesk.entry import log_vehicle_entry
from parkdesk.errors import (
    EntryValidationError,
    ExitInProgress,
    RemoteOperationError,
    RuleNotFound,
    SessionNotFound,
)
from parkdesk.exit_flow import ExitState, ExitTransactionCoordinator
from parkdesk.gate import open_exit_barrier
from parkdesk.graphql_client import GraphQLClient
from parkdesk.monitor import SessionMonitor
from parkdesk.schemas import (
    DashboardSummary,
    EntryFee,
    ExitOutcomeResponse,
    ExitQuote,
    SessionListResponse,
    UnsettledChargeResponse,
    VehicleEntryCreate,
    VehicleEntryResponse,
)

logging.basicConfig(level=logging.INFO)

app = FastAPI(
    title="ParkDesk",
    version="1.0.0",
)


class Desk:
    """The live views and the exit coordinator shared by all requests."""

    def __init__(self, client, capacity: int = config.FACILITY_CAPACITY, interval: float = config.REFRESH_INTERVAL_SECONDS):
        self.client = client
        self.monitor = SessionMonitor(client, interval=interval)
        self.feed = DashboardFeed(client, capacity=capacity, interval=interval)
        self.exits = ExitTransactionCoordinator(client, self.monitor, on_exit=self.notify_gate)
        self.gate_tasks = set()

    async def notify_gate(self, attempt):
        # responses do not wait for the broker
        task = asyncio.create_task(open_exit_barrier(attempt))
        self.gate_tasks.add(task)
        task.add_done_callback(self.gate_tasks.discard)


desk = Desk(GraphQLClient())


def get_desk() -> Desk:
    return desk


@app.on_event("startup")
async def on_startup():
    await init_db()
    desk.monitor.start()
    desk.feed.start()


@app.on_event("shutdown")
async def on_shutdown():
    await desk.monitor.stop()
    await desk.feed.stop()
    await desk.client.aclose()


def session_list(desk: Desk, search: str) -> SessionListResponse:
    now = desk.monitor.clock()
    return SessionListResponse(
        sessions=[desk.monitor.describe(s, now) for s in desk.monitor.visible(search)],
        refreshed_at=desk.monitor.refreshed_at,
        error=desk.monitor.last_error,
    )


@app.get("/api/v1/sessions", response_model=SessionListResponse)
async def active_sessions(search: str = "", desk: Desk = Depends(get_desk)):
    return session_list(desk, search)


@app.post("/api/v1/sessions/refresh", response_model=SessionListResponse)
async def refresh_sessions(search: str = "", desk: Desk = Depends(get_desk)):
    await desk.monitor.refresh()
    return session_list(desk, search)


@app.get("/api/v1/pricing/{vehicle_type}", response_model=EntryFee)
async def entry_fee(vehicle_type: str, desk: Desk = Depends(get_desk)):
    try:
        return desk.monitor.catalog.entry_fee(vehicle_type)
    except RuleNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/api/v1/sessions/entry/", response_model=VehicleEntryResponse)
async def vehicle_entry(entry: VehicleEntryCreate, desk: Desk = Depends(get_desk)):
    try:
        created = await log_vehicle_entry(desk.client, desk.monitor.catalog, entry)
    except EntryValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except RuleNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RemoteOperationError as e:
        raise HTTPException(status_code=HTTP_424_FAILED_DEPENDENCY, detail=str(e))

    await desk.monitor.refresh()
    await desk.feed.refresh()
    return created


@app.post("/api/v1/sessions/{session_id}/quote", response_model=ExitQuote)
async def exit_quote(session_id: str, desk: Desk = Depends(get_desk)):
    try:
        return desk.exits.open(session_id).quote
    except (SessionNotFound, RuleNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.delete("/api/v1/sessions/{session_id}/quote", status_code=204)
async def cancel_exit(session_id: str, desk: Desk = Depends(get_desk)):
    desk.exits.discard(session_id)
    return Response(status_code=204)


@app.post("/api/v1/sessions/{session_id}/exit", response_model=ExitOutcomeResponse)
async def vehicle_exit(
    session_id: str,
    response: Response,
    desk: Desk = Depends(get_desk),
    db: AsyncSession = Depends(get_db),
):
    attempt = desk.exits.pending(session_id)
    try:
        if attempt is None:
            attempt = desk.exits.open(session_id)
        attempt = await desk.exits.confirm(attempt)
    except (SessionNotFound, RuleNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ExitInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))

    if attempt.state is ExitState.failed:
        raise HTTPException(status_code=HTTP_424_FAILED_DEPENDENCY, detail=f"Exit processing failed: {attempt.error}")

    ledger_recorded = None
    if attempt.state is ExitState.exited_pending_payment:
        response.status_code = HTTP_202_ACCEPTED
        message = "Vehicle exited, overstay payment not collected"
        try:
            await record_unsettled_charge(db, attempt)
            ledger_recorded = True
        except SQLAlchemyError as e:
            # upstream exit is already final
            await db.rollback()
            ledger_recorded = False
            message += f"; reconciliation entry for charge {attempt.charge.id} was not saved"
            logging.error(f"Could not record unsettled charge {attempt.charge.id} for session {attempt.session_id}: {e}")
    elif attempt.charge is not None:
        message = "Overstay fee collected, exit recorded"
    elif attempt.error:
        message = f"Exit recorded. {attempt.error}"
    else:
        message = "Exit recorded"

    return ExitOutcomeResponse(
        state=attempt.state.value,
        session_id=attempt.session_id,
        quote=attempt.quote,
        total_amount=attempt.processed.total_amount,
        overstay_fee=attempt.processed.overstay_fee,
        charge=attempt.charge,
        ledger_recorded=ledger_recorded,
        message=message,
    )


@app.get("/api/v1/dashboard", response_model=DashboardSummary)
async def dashboard(desk: Desk = Depends(get_desk)):
    return desk.feed.summary()


@app.get("/api/v1/reconciliation", response_model=List[UnsettledChargeResponse])
async def outstanding_charges(db: AsyncSession = Depends(get_db)):
    return await list_outstanding_charges(db)


@app.post("/api/v1/reconciliation/{charge_id}/collect", response_model=UnsettledChargeResponse)
async def collect_outstanding(charge_id: str, desk: Desk = Depends(get_desk), db: AsyncSession = Depends(get_db)):
    charge = await get_charge(db, charge_id)
    if not charge or not charge.is_outstanding:
        raise HTTPException(status_code=404, detail="No outstanding charge found")

    try:
        collected = await desk.exits.collect_outstanding(charge_id)
    except RemoteOperationError as e:
        raise HTTPException(status_code=HTTP_424_FAILED_DEPENDENCY, detail=str(e))

    if not collected.is_collected:
        raise HTTPException(status_code=402, detail="Payment was not collected")

    return await mark_charge_collected(db, charge_id)


@app.get("/api/v1/transactions")
async def transaction_history(
    page: int = 1,
    page_size: int = 20,
    status: Optional[str] = None,
    vehicle_type: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    desk: Desk = Depends(get_desk),
):
    try:
        return await desk.client.transaction_history(
            page=page,
            page_size=page_size,
            status=status,
            vehicle_type=vehicle_type,
            start_date=start_date,
            end_date=end_date,
            search=search,
        )
    except RemoteOperationError as e:
        raise HTTPException(status_code=HTTP_424_FAILED_DEPENDENCY, detail=str(e))


if __name__ == "__main__":
    uvicorn.run("parkdesk.main:app", host="0.0.0.0", port=8000, reload=True)
