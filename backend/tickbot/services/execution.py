"""Turns a fused signal into a proposal → buy → settlement round trip over the Deriv connection."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import ValidationError

from tickbot.exceptions import NotConnectedError
from tickbot.schemas.deriv import (
    BuyPayload,
    Envelope,
    OpenContractPayload,
    ProposalPayload,
    buy_request,
    open_contract_subscription,
    proposal_request,
)
from tickbot.schemas.engine import EngineConfig, Signal
from tickbot.services.state import EngineState

if TYPE_CHECKING:
    from tickbot.services.deriv_client import DerivConnection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settlement:
    contract_id: int
    signal: Signal
    confidence: float
    stake: float
    martingale_level: int
    profit: float


@dataclass
class PendingTrade:
    signal: Signal
    confidence: float
    stake: float
    martingale_level: int
    proposal_req_id: int | None = None
    proposal_id: str | None = None
    contract_id: int | None = None


class ExecutionTracker:
    """
    Owns the single in-flight trade. `state.is_trading` goes True in execute() and
    back to False only on settlement or on a proposal/buy failure.
    """

    def __init__(self, state: EngineState, config: EngineConfig, connection: "DerivConnection") -> None:
        self._state = state
        self._config = config
        self._connection = connection
        self._pending: PendingTrade | None = None
        self.last_error: str | None = None

    @property
    def pending(self) -> PendingTrade | None:
        return self._pending

    async def execute(self, signal: Signal, confidence: float, stake: float, martingale_level: int) -> bool:
        if self._state.is_trading:
            return False
        if signal == "NEUTRAL":
            raise ValueError("cannot trade a NEUTRAL signal")

        self._state.is_trading = True
        self._pending = PendingTrade(
            signal=signal,
            confidence=confidence,
            stake=stake,
            martingale_level=martingale_level,
        )
        request = proposal_request(
            amount=stake,
            contract_type=signal,
            duration=self._config.duration,
            symbol=self._config.symbol,
            duration_unit=self._config.duration_unit,
            currency=self._config.currency,
        )
        try:
            self._pending.proposal_req_id = await self._connection.send(request)
        except NotConnectedError:
            self.fail("connection not open")
            return False
        logger.info("Proposal sent: %s stake=%.2f level=%d", signal, stake, martingale_level)
        return True

    async def on_proposal(self, envelope: Envelope) -> None:
        pending = self._pending
        if pending is None or pending.proposal_id is not None:
            return
        if envelope.req_id is not None and envelope.req_id != pending.proposal_req_id:
            return
        if envelope.error is not None:
            self.fail(f"proposal rejected: {envelope.error.message}")
            return
        try:
            proposal = ProposalPayload.model_validate(envelope.body())
        except ValidationError:
            self.fail("malformed proposal")
            return

        pending.proposal_id = proposal.id
        try:
            await self._connection.send(buy_request(proposal.id, pending.stake))
        except NotConnectedError:
            self.fail("connection lost before buy")

    async def on_buy(self, envelope: Envelope) -> None:
        pending = self._pending
        if pending is None or pending.proposal_id is None or pending.contract_id is not None:
            return
        if envelope.error is not None:
            self.fail(f"purchase rejected: {envelope.error.message}")
            return
        try:
            bought = BuyPayload.model_validate(envelope.body())
        except ValidationError:
            self.fail("malformed buy confirmation")
            return

        pending.contract_id = bought.contract_id
        logger.info("Contract bought: id=%s", bought.contract_id)
        try:
            await self._connection.send(open_contract_subscription(bought.contract_id))
        except NotConnectedError:
            # Contract exists broker-side; resubscribe_after_reconnect() picks it up again.
            logger.warning("Connection lost before settlement subscription for %s", bought.contract_id)

    def on_open_contract(self, envelope: Envelope) -> Settlement | None:
        """Return the settlement once the tracked contract is sold, else None."""
        pending = self._pending
        if pending is None or pending.contract_id is None:
            return None
        if envelope.error is not None:
            logger.warning("Contract update error: %s", envelope.error.message)
            return None
        try:
            contract = OpenContractPayload.model_validate(envelope.body())
        except ValidationError:
            logger.warning("Malformed contract update dropped")
            return None
        if contract.contract_id != pending.contract_id or not contract.is_sold:
            return None

        self._pending = None
        self._state.is_trading = False
        return Settlement(
            contract_id=contract.contract_id,
            signal=pending.signal,
            confidence=pending.confidence,
            stake=pending.stake,
            martingale_level=pending.martingale_level,
            profit=contract.profit,
        )

    def fail(self, reason: str) -> None:
        """Drop the in-flight trade without recording an outcome."""
        logger.warning("Trade failed: %s", reason)
        self.last_error = reason
        self._pending = None
        self._state.is_trading = False

    async def resubscribe_after_reconnect(self) -> None:
        pending = self._pending
        if pending is None:
            return
        if pending.contract_id is None:
            self.fail("connection dropped before purchase confirmation")
            return
        logger.info("Resubscribing to contract %s after reconnect", pending.contract_id)
        try:
            await self._connection.send(open_contract_subscription(pending.contract_id))
        except NotConnectedError:
            logger.warning("Resubscribe for contract %s failed: not connected", pending.contract_id)
