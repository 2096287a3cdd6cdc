import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Set

from pydantic import BaseModel

from parkdesk.errors import ExitInProgress, ParkDeskError, RemoteOperationError
from parkdesk.quote import calculate_exit_quote
from parkdesk.schemas import ExitQuote, OverstayCharge, ProcessedExit, VehicleSession
from parkdesk.snapshot import utcnow


class ExitState(str, Enum):
    quoted = "quoted"
    failed = "failed"
    exited_pending_payment = "exited_pending_payment"
    settled = "settled"


class ExitAttempt(BaseModel):
    session: VehicleSession
    quote: ExitQuote
    state: ExitState = ExitState.quoted
    processed: Optional[ProcessedExit] = None
    charge: Optional[OverstayCharge] = None
    error: Optional[str] = None

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def vehicle_exited(self) -> bool:
        return self.state in (ExitState.exited_pending_payment, ExitState.settled)


class ExitTransactionCoordinator:
    """Runs an exit as two remote steps: finalize the session, then collect any overstay fee.

    Quoted -> Failed                  exit rejected, session still active
    Quoted -> Exited(pending payment) session closed, overstay charge uncollected
    Quoted -> Settled                 session closed, nothing owed
    """

    def __init__(
        self,
        client,
        monitor,
        on_exit: Optional[Callable[[ExitAttempt], Awaitable[None]]] = None,
        clock=utcnow,
    ):
        self.client = client
        self.monitor = monitor
        self.on_exit = on_exit
        self.clock = clock
        self._open: Dict[str, ExitAttempt] = {}
        self._busy: Set[str] = set()

    def open(self, session_id: str) -> ExitAttempt:
        session = self.monitor.find(session_id)
        rule = self.monitor.catalog.lookup(session.vehicle_type)
        attempt = ExitAttempt(session=session, quote=calculate_exit_quote(session, rule, self.clock()))
        self._open[session_id] = attempt
        return attempt

    def pending(self, session_id: str) -> Optional[ExitAttempt]:
        return self._open.get(session_id)

    def discard(self, session_id: str):
        self._open.pop(session_id, None)

    async def confirm(self, attempt: ExitAttempt) -> ExitAttempt:
        if attempt.state is not ExitState.quoted:
            raise ParkDeskError(f"Exit for session '{attempt.session_id}' is already {attempt.state.value}")
        if attempt.session_id in self._busy:
            raise ExitInProgress(attempt.session_id)

        self._busy.add(attempt.session_id)
        try:
            await self._run(attempt)
        finally:
            self._busy.discard(attempt.session_id)
            self.discard(attempt.session_id)

        if attempt.vehicle_exited:
            await self.monitor.refresh()
            if self.on_exit is not None:
                await self.on_exit(attempt)
        return attempt

    async def _run(self, attempt: ExitAttempt):
        try:
            processed = await self.client.process_vehicle_exit(attempt.session_id)
        except RemoteOperationError as e:
            attempt.state = ExitState.failed
            attempt.error = str(e)
            logging.error(f"Exit for session {attempt.session_id} rejected, session stays active: {e}")
            return

        attempt.processed = processed
        charge = processed.overstay_record
        if processed.overstay_fee > 0 and charge is None:
            attempt.state = ExitState.settled
            attempt.error = f"Overstay fee {processed.overstay_fee} was assessed without a charge record and not collected"
            logging.warning(f"Session {attempt.session_id} exited: {attempt.error}")
            return
        if processed.overstay_fee <= 0:
            attempt.state = ExitState.settled
            logging.info(f"Session {attempt.session_id} exited, total {processed.total_amount}")
            return

        attempt.charge = charge
        try:
            collected = await self.client.collect_overstay_payment(charge.id)
        except RemoteOperationError as e:
            attempt.state = ExitState.exited_pending_payment
            attempt.error = str(e)
            logging.error(
                f"Session {attempt.session_id} exited but overstay charge {charge.id} "
                f"({processed.overstay_fee}) was not collected: {e}"
            )
            return

        attempt.charge = charge.model_copy(update={"is_collected": collected.is_collected})
        attempt.state = ExitState.settled
        logging.info(
            f"Session {attempt.session_id} exited, overstay charge {charge.id} collected, "
            f"total {processed.total_amount}"
        )

    async def collect_outstanding(self, charge_id: str) -> OverstayCharge:
        """Operator-initiated collection of a charge left behind by a partially failed exit."""
        charge = await self.client.collect_overstay_payment(charge_id)
        logging.info(f"Outstanding overstay charge {charge_id} collected: {charge.is_collected}")
        return charge
