import dataclasses
import logging
import os
from typing import Optional


DEFAULT_RPC_URL = "https://dream-rpc.somnia.network/"
DEFAULT_CHAIN_ID = 50312
DEFAULT_CONTRACT_ADDRESS = "0x5E779AC2c0E1Fd2D686fc7b8cdb2fc4D86239978"
DEFAULT_EXPLORER_URL = "https://shannon-explorer.somnia.network"

PRICE_DECIMALS = 8
NATIVE_DECIMALS = 18


@dataclasses.dataclass(frozen=True)
class NetworkConfig:
    chain_id: int = DEFAULT_CHAIN_ID
    name: str = "Somnia Testnet"
    rpc_url: str = DEFAULT_RPC_URL
    currency_symbol: str = "STT"
    decimals: int = NATIVE_DECIMALS
    explorer_url: str = DEFAULT_EXPLORER_URL

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/tx/{tx_hash}"

    def address_url(self, address: str) -> str:
        return f"{self.explorer_url}/address/{address}"


@dataclasses.dataclass(frozen=True)
class PollingPolicy:
    """Timing used by the lifecycle coordinator.

    ``interval`` and ``timeout`` drive the resolution polling loop; the
    receipt values bound the wait for the submission to be mined.
    """

    interval: float = 3.0
    timeout: float = 120.0
    receipt_interval: float = 1.0
    receipt_timeout: float = 180.0


@dataclasses.dataclass(frozen=True)
class GameConfig:
    network: NetworkConfig = NetworkConfig()
    contract_address: str = DEFAULT_CONTRACT_ADDRESS
    private_key: Optional[str] = None
    polling: PollingPolicy = PollingPolicy()
    rpc_timeout: float = 20.0

    @classmethod
    def from_env(cls) -> "GameConfig":
        network = NetworkConfig(
            chain_id=int(os.getenv("GAME_CHAIN_ID", str(DEFAULT_CHAIN_ID))),
            rpc_url=os.getenv("GAME_RPC_URL", DEFAULT_RPC_URL),
        )
        polling = PollingPolicy(
            interval=float(os.getenv("GAME_POLL_INTERVAL", "3")),
            timeout=float(os.getenv("GAME_POLL_TIMEOUT", "120")),
        )
        return cls(
            network=network,
            contract_address=os.getenv("GAME_CONTRACT_ADDRESS", DEFAULT_CONTRACT_ADDRESS),
            private_key=os.getenv("GAME_PRIVATE_KEY") or None,
            polling=polling,
            rpc_timeout=float(os.getenv("GAME_RPC_TIMEOUT", "20")),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
