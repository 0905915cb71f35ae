"""Read-only snapshot of the game contract for periodic refresh."""
import dataclasses
from typing import Any, Dict, List, Optional

from guess_game.gateway import ContractGateway
from guess_game.models import PlayerStats
from guess_game.units import format_ether


@dataclasses.dataclass(frozen=True)
class Asset:
    id: str
    symbol: str
    name: str


KNOWN_ASSETS = (
    Asset("bitcoin", "BTC", "Bitcoin"),
    Asset("ethereum", "ETH", "Ethereum"),
    Asset("solana", "SOL", "Solana"),
)


def available_assets(supported: List[str]) -> List[Asset]:
    return [a for a in KNOWN_ASSETS if a.id in supported]


def format_cooldown(seconds: int) -> str:
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


@dataclasses.dataclass(frozen=True)
class Overview:
    prize_pool: int
    total_fee: int
    supported_cryptos: List[str]
    owner: str
    player: Optional[str] = None
    stats: Optional[PlayerStats] = None
    cooldown_remaining: int = 0

    @property
    def is_owner(self) -> bool:
        return self.player is not None and self.owner.lower() == self.player.lower()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prize_pool": format_ether(self.prize_pool),
            "total_fee": format_ether(self.total_fee),
            "total_fee_wei": str(self.total_fee),
            "supported_cryptos": self.supported_cryptos,
            "assets": [dataclasses.asdict(a) for a in available_assets(self.supported_cryptos)],
            "owner": self.owner,
            "player": self.player,
            "is_owner": self.is_owner,
            "stats": self.stats.to_dict() if self.stats else None,
            "cooldown_remaining": self.cooldown_remaining,
            "cooldown": format_cooldown(self.cooldown_remaining),
        }


def load_overview(gateway: ContractGateway, player: Optional[str] = None) -> Overview:
    """Fetch pool, fee, assets and owner, plus stats and cooldown when a player is given."""
    stats = None
    cooldown = 0
    if player:
        stats = gateway.player_stats(player)
        cooldown = gateway.cooldown_remaining(player)
    return Overview(
        prize_pool=gateway.prize_pool(),
        total_fee=gateway.total_fee(),
        supported_cryptos=gateway.supported_cryptos(),
        owner=gateway.owner(),
        player=player,
        stats=stats,
        cooldown_remaining=cooldown,
    )
