import dataclasses
from typing import Any, Dict, Optional, Sequence

from eth_utils import to_checksum_address

from guess_game.events import DecodedEvent
from guess_game.tiers import Tier
from guess_game.units import bps_to_percent, format_ether, from_scaled_price


@dataclasses.dataclass(frozen=True)
class GuessRequest:
    """Pending guess record as stored by the contract."""

    request_id: int
    player: str
    crypto: str
    guessed_price: int
    submitted_at: int
    resolved: bool

    @classmethod
    def from_tuple(cls, request_id: int, raw: Sequence[Any]) -> "GuessRequest":
        player, crypto, guessed_price, timestamp, resolved = raw
        return cls(
            request_id=request_id,
            player=to_checksum_address(player),
            crypto=crypto,
            guessed_price=int(guessed_price),
            submitted_at=int(timestamp),
            resolved=bool(resolved),
        )


@dataclasses.dataclass(frozen=True)
class ResolutionEvent:
    request_id: int
    player: str
    crypto: str
    guessed_price: int
    actual_price: int
    accuracy_bps: int
    reward: int
    won: bool
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None

    @classmethod
    def from_event(cls, event: DecodedEvent) -> "ResolutionEvent":
        a = event.args
        return cls(
            request_id=int(a["requestId"]),
            player=a["player"],
            crypto=a["crypto"],
            guessed_price=int(a["guessedPrice"]),
            actual_price=int(a["actualPrice"]),
            accuracy_bps=int(a["accuracyBps"]),
            reward=int(a["reward"]),
            won=bool(a["won"]),
            tx_hash=event.tx_hash,
            block_number=event.block_number,
        )


@dataclasses.dataclass(frozen=True)
class PlayerStats:
    total_guesses: int
    wins: int
    total_winnings: int
    best_accuracy_bps: int

    @classmethod
    def from_tuple(cls, raw: Sequence[Any]) -> "PlayerStats":
        total, wins, winnings, best = (int(v) for v in raw)
        return cls(total_guesses=total, wins=wins, total_winnings=winnings, best_accuracy_bps=best)

    @property
    def win_rate(self) -> Optional[float]:
        if self.total_guesses == 0:
            return None
        return self.wins / self.total_guesses * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_guesses": self.total_guesses,
            "wins": self.wins,
            "win_rate": None if self.win_rate is None else f"{self.win_rate:.1f}",
            "total_winnings": format_ether(self.total_winnings),
            "best_accuracy": bps_to_percent(self.best_accuracy_bps) if self.best_accuracy_bps > 0 else None,
        }


@dataclasses.dataclass(frozen=True)
class GuessResult:
    resolution: ResolutionEvent
    tier: Tier
    stats: Optional[PlayerStats] = None

    @property
    def reward_display(self) -> str:
        return format_ether(self.resolution.reward)

    def to_dict(self) -> Dict[str, Any]:
        r = self.resolution
        return {
            "request_id": r.request_id,
            "player": r.player,
            "crypto": r.crypto,
            "guessed_price": from_scaled_price(r.guessed_price),
            "actual_price": from_scaled_price(r.actual_price),
            "accuracy_bps": r.accuracy_bps,
            "accuracy_percent": bps_to_percent(r.accuracy_bps),
            "reward_wei": str(r.reward),
            "reward": self.reward_display,
            "won": r.won,
            "tier": self.tier.to_dict(),
            "tx_hash": r.tx_hash,
            "stats": self.stats.to_dict() if self.stats else None,
        }
