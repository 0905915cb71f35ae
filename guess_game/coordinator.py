"""Lifecycle of a single guess: submit, confirm, await resolution, classify.

The coordinator is an explicit state machine. Each transition produces a new
immutable ``Lifecycle`` snapshot which observers (a UI, a relay server) can
render. Time is read from an injectable clock and waits go through an
injectable sleep so the polling deadline can be driven deterministically.
"""
import asyncio
import dataclasses
import enum
import logging
import threading
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from guess_game import tiers
from guess_game.config import PollingPolicy
from guess_game.errors import (
    GuessGameError,
    PreconditionViolation,
    RejectedByContract,
    RequestIdNotFound,
    ResolutionEventMissing,
    ResolutionTimeout,
    TransportError,
)
from guess_game.gateway import ContractGateway
from guess_game.models import GuessResult, ResolutionEvent
from guess_game.rpc import receipt_field
from guess_game.units import to_scaled_price


logger = logging.getLogger(__name__)


class Phase(enum.Enum):
    IDLE = "Idle"
    SUBMITTING = "Submitting"
    AWAITING_CONFIRMATION = "AwaitingConfirmation"
    AWAITING_RESOLUTION = "AwaitingResolution"
    RESOLVED = "Resolved"
    TIMED_OUT = "TimedOut"
    FAILED = "Failed"


ACTIVE = frozenset({Phase.SUBMITTING, Phase.AWAITING_CONFIRMATION, Phase.AWAITING_RESOLUTION})
TERMINAL = frozenset({Phase.RESOLVED, Phase.TIMED_OUT, Phase.FAILED})

_TRANSITIONS = {
    Phase.IDLE: {Phase.IDLE, Phase.SUBMITTING},
    Phase.SUBMITTING: {Phase.AWAITING_CONFIRMATION, Phase.FAILED, Phase.IDLE},
    Phase.AWAITING_CONFIRMATION: {Phase.AWAITING_RESOLUTION, Phase.FAILED, Phase.IDLE},
    Phase.AWAITING_RESOLUTION: {Phase.RESOLVED, Phase.TIMED_OUT, Phase.FAILED, Phase.IDLE},
    Phase.RESOLVED: {Phase.IDLE, Phase.SUBMITTING},
    Phase.TIMED_OUT: {Phase.IDLE, Phase.SUBMITTING},
    Phase.FAILED: {Phase.IDLE, Phase.SUBMITTING},
}


@dataclasses.dataclass(frozen=True)
class Lifecycle:
    phase: Phase = Phase.IDLE
    status: str = ""
    crypto: Optional[str] = None
    tx_hash: Optional[str] = None
    submitted_block: Optional[int] = None
    request_id: Optional[int] = None
    elapsed: float = 0.0
    result: Optional[GuessResult] = None
    error_kind: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.phase in ACTIVE

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "status": self.status,
            "crypto": self.crypto,
            "tx_hash": self.tx_hash,
            "submitted_block": self.submitted_block,
            "request_id": self.request_id,
            "elapsed": round(self.elapsed, 1),
            "result": self.result.to_dict() if self.result else None,
            "error_kind": self.error_kind,
            "error": self.error,
        }


Observer = Callable[[Lifecycle], None]


class GuessCoordinator:
    def __init__(self, gateway: ContractGateway, policy: Optional[PollingPolicy] = None, *,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
                 classify: Callable[[int], tiers.Tier] = tiers.classify,
                 refresh_stats: bool = True):
        self.gateway = gateway
        self.policy = policy or PollingPolicy()
        self.state = Lifecycle()
        self._clock = clock
        self._sleep = sleep
        self._classify = classify
        self._refresh_stats = refresh_stats
        self._observers: List[Observer] = []
        self._abandoned = False
        self._claim_lock = threading.Lock()

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def _set(self, phase: Phase, **changes: Any) -> Lifecycle:
        current = self.state
        if phase not in _TRANSITIONS[current.phase]:
            raise RuntimeError(f"Illegal lifecycle transition {current.phase.value} -> {phase.value}")
        if phase is Phase.SUBMITTING:
            self.state = Lifecycle(phase=phase, **changes)
        elif phase is Phase.IDLE:
            self.state = Lifecycle()
        else:
            self.state = dataclasses.replace(current, phase=phase, **changes)
        logger.info("Guess lifecycle %s -> %s", current.phase.value, phase.value)
        return self._notify()

    def _update(self, **changes: Any) -> Lifecycle:
        """Change the status of the running guess without a transition."""
        if not self.state.is_active:
            raise RuntimeError(f"No guess in progress to update ({self.state.phase.value})")
        self.state = dataclasses.replace(self.state, **changes)
        return self._notify()

    def _notify(self) -> Lifecycle:
        for observer in self._observers:
            observer(self.state)
        return self.state

    def _fail(self, err: GuessGameError) -> Lifecycle:
        logger.warning("Guess failed (%s): %s", err.kind, err)
        return self._set(Phase.FAILED, error_kind=err.kind, error=str(err), status=f"Error: {err}")

    # preconditions

    def check_preconditions(self, price_text: Optional[str], test: bool = False) -> int:
        """Validate a submission and return the scaled price.

        Raises ``PreconditionViolation`` without touching the lifecycle.
        """
        if self.state.is_active:
            raise PreconditionViolation("busy", "A guess is already in progress")
        return self._validate(price_text, test)

    def _validate(self, price_text: Optional[str], test: bool) -> int:
        player = self.gateway.player
        if player is None:
            raise PreconditionViolation("no_account", "No account connected")
        if price_text is None or not str(price_text).strip():
            raise PreconditionViolation("empty_price", "No price entered")
        scaled = to_scaled_price(price_text)
        chain_id = self.gateway.connected_chain_id()
        if chain_id != self.gateway.chain_id:
            raise PreconditionViolation(
                "wrong_network", f"Connected to chain {chain_id}, expected {self.gateway.chain_id}")
        # the owner-only test entry point is exempt from cooldown
        if not test:
            remaining = self.gateway.cooldown_remaining(player)
            if remaining > 0:
                raise PreconditionViolation("cooldown_active", f"Cooldown active for {remaining}s")
        return scaled

    def _claim(self, crypto: str) -> None:
        """Atomically reject a second submission and enter Submitting."""
        with self._claim_lock:
            if self.state.is_active:
                raise PreconditionViolation("busy", "A guess is already in progress")
            self._abandoned = False
            self._set(Phase.SUBMITTING, crypto=crypto, status="Checking preconditions...")

    # lifecycle

    async def submit(self, crypto: str, price_text: str, test: bool = False) -> Lifecycle:
        """Run one guess to a terminal state (or back to Idle if abandoned).

        A submission rejected by a precondition leaves the lifecycle in Idle.
        """
        self._claim(crypto)
        try:
            scaled = self._validate(price_text, test)
        except GuessGameError:
            self._set(Phase.IDLE)
            raise
        self._update(status="Preparing transaction...")
        try:
            return await self._run(crypto, scaled, test)
        except asyncio.CancelledError:
            logger.info("Guess tracking cancelled; submitted transaction is left as is")
            if self.state.is_active:
                self._set(Phase.IDLE)
            raise

    async def _run(self, crypto: str, scaled: int, test: bool) -> Lifecycle:
        try:
            fee = self.gateway.total_fee()
            self._update(status="Please confirm in wallet...")
            tx_hash = self.gateway.submit_guess(crypto, scaled, fee, test=test)
        except GuessGameError as e:
            return self._fail(e)
        self._set(Phase.AWAITING_CONFIRMATION, tx_hash=tx_hash,
                  status="Transaction sent! Waiting for confirmation...")

        try:
            receipt = await self._await_receipt(tx_hash)
        except GuessGameError as e:
            return self._fail(e)
        if receipt is None:
            return self.state

        made = self.gateway.guess_made(receipt)
        if made is None:
            return self._fail(RequestIdNotFound(f"No GuessMade event in receipt of {tx_hash}"))
        request_id = int(made.args["requestId"])
        block = receipt_field(receipt, "blockNumber", made.block_number or 0)
        self._set(Phase.AWAITING_RESOLUTION, request_id=request_id, submitted_block=block,
                  status="Guess submitted! Waiting for agent...")
        return await self._track(request_id, block)

    async def _await_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        start = self._clock()
        while True:
            if self._abandoned:
                self._set(Phase.IDLE)
                return None
            receipt = self.gateway.get_receipt(tx_hash)
            if receipt is not None:
                if receipt_field(receipt, "status", 1) == 0:
                    raise RejectedByContract(tx_hash=tx_hash)
                return receipt
            if self._clock() - start >= self.policy.receipt_timeout:
                raise TransportError(
                    f"Transaction {tx_hash} not mined within {self.policy.receipt_timeout:.0f}s")
            await self._sleep(self.policy.receipt_interval)

    async def _track(self, request_id: int, from_block: int) -> Lifecycle:
        start = self._clock()
        while self._clock() - start < self.policy.timeout:
            if self._abandoned:
                return self._set(Phase.IDLE)
            try:
                pending = self.gateway.pending_guess(request_id)
            except GuessGameError as e:
                return self._fail(e)
            logger.debug("Request %d resolved=%s", request_id, pending.resolved)
            if pending.resolved:
                return self._on_resolved(request_id, from_block)
            await self._sleep(self.policy.interval)
            elapsed = self._clock() - start
            self._update(elapsed=elapsed, status=f"Waiting for agent... ({int(elapsed)}s)")

        if self._abandoned:
            return self._set(Phase.IDLE)
        err = ResolutionTimeout(f"Request {request_id} not resolved within {self.policy.timeout:.0f}s")
        logger.warning("%s", err)
        return self._set(Phase.TIMED_OUT, elapsed=self._clock() - start, error_kind=err.kind,
                         error=str(err), status="Timeout - check explorer for result")

    def _on_resolved(self, request_id: int, from_block: int) -> Lifecycle:
        try:
            events = self.gateway.resolution_events(request_id, from_block)
        except GuessGameError as e:
            return self._fail(e)
        if not events:
            return self._fail(ResolutionEventMissing(
                f"Request {request_id} is resolved but no GuessResolved event was found from block {from_block}"))
        if len(events) > 1:
            logger.warning("%d GuessResolved events for request %d; using the first", len(events), request_id)
        return self.complete(events[0])

    def complete(self, event: ResolutionEvent) -> Lifecycle:
        """Apply a resolution event. Repeats for the same request are no-ops."""
        if self.state.phase is Phase.RESOLVED and self.state.request_id == event.request_id:
            logger.debug("Request %d already resolved; ignoring repeat", event.request_id)
            return self.state
        if self.state.phase is not Phase.AWAITING_RESOLUTION or self.state.request_id != event.request_id:
            raise RuntimeError(f"No guess awaiting resolution for request {event.request_id}")

        tier = self._classify(event.accuracy_bps)
        if tier.is_win != event.won:
            logger.warning("Tier %s disagrees with won=%s for request %d",
                           tier.label, event.won, event.request_id)
        result = GuessResult(resolution=event, tier=tier, stats=self._player_stats(event.player))
        return self._set(Phase.RESOLVED, result=result,
                         status="You won!" if event.won else "Better luck next time!")

    def _player_stats(self, player: str):
        if not self._refresh_stats:
            return None
        try:
            return self.gateway.player_stats(player)
        except GuessGameError as e:
            logger.warning("Could not refresh stats for %s: %s", player, e)
            return None

    # control

    def abandon(self) -> None:
        """Stop tracking the current guess. A broadcast transaction is not touched."""
        if self.state.is_active:
            self._abandoned = True

    def reset(self) -> Lifecycle:
        with self._claim_lock:
            if self.state.is_active:
                raise PreconditionViolation("busy", "A guess is still in progress")
            return self._set(Phase.IDLE)

    def lookup(self, request_id: int, from_block: int = 0) -> Optional[GuessResult]:
        """Out-of-band check of a request, e.g. after a timeout.

        Returns ``None`` while unresolved; does not change the lifecycle.
        """
        pending = self.gateway.pending_guess(request_id)
        if not pending.resolved:
            return None
        events = self.gateway.resolution_events(request_id, from_block)
        if not events:
            raise ResolutionEventMissing(f"Request {request_id} is resolved but its event was not found")
        event = events[0]
        return GuessResult(resolution=event, tier=self._classify(event.accuracy_bps))
