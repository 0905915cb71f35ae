import asyncio
import json
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv

# ensure local package imports work when run from workspace root
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from guess_game.config import GameConfig, configure_logging
from guess_game.coordinator import GuessCoordinator
from guess_game.dashboard import load_overview
from guess_game.errors import GuessGameError
from guess_game.gateway import ContractGateway
from guess_game.units import parse_ether


USAGE = (
    "Usage:\n"
    "  python tools/game_interact.py overview [--player 0x...]\n"
    "  python tools/game_interact.py stats --player 0x...\n"
    "  python tools/game_interact.py pending --request 42\n"
    "  python tools/game_interact.py guess --crypto bitcoin --price 65000 [--test]\n"
    "  python tools/game_interact.py result --request 42 [--from-block N]\n"
    "  python tools/game_interact.py fund --amount 1\n"
)


def run(argv: List[str], gateway: Optional[ContractGateway] = None) -> dict:
    if len(argv) < 2:
        raise SystemExit(USAGE)

    config = GameConfig.from_env()
    gateway = gateway or ContractGateway.from_config(config)
    cmd = argv[1]
    args = argv[2:]

    def get_arg(flag: str, default: Optional[str] = None) -> Optional[str]:
        if flag in args:
            i = args.index(flag)
            if i + 1 < len(args):
                return args[i + 1]
        return default

    if cmd == "overview":
        return load_overview(gateway, get_arg("--player") or gateway.player).to_dict()
    elif cmd == "stats":
        player = get_arg("--player") or gateway.player
        if not player:
            raise SystemExit("Missing --player")
        return gateway.player_stats(player).to_dict()
    elif cmd == "pending":
        request_id = get_arg("--request")
        if not request_id:
            raise SystemExit("Missing --request")
        pending = gateway.pending_guess(int(request_id))
        return {
            "request_id": pending.request_id,
            "player": pending.player,
            "crypto": pending.crypto,
            "guessed_price": pending.guessed_price,
            "timestamp": pending.submitted_at,
            "resolved": pending.resolved,
        }
    elif cmd == "guess":
        crypto = get_arg("--crypto")
        price = get_arg("--price")
        if not crypto or not price:
            raise SystemExit("Missing --crypto or --price")
        coordinator = GuessCoordinator(gateway, config.polling)
        coordinator.subscribe(lambda s: print(s.status, file=sys.stderr))
        state = asyncio.run(coordinator.submit(crypto, price, test="--test" in args))
        return state.to_dict()
    elif cmd == "result":
        request_id = get_arg("--request")
        if not request_id:
            raise SystemExit("Missing --request")
        coordinator = GuessCoordinator(gateway, config.polling)
        res = coordinator.lookup(int(request_id), int(get_arg("--from-block", "0") or "0"))
        return res.to_dict() if res else {"request_id": int(request_id), "resolved": False}
    elif cmd == "fund":
        amount = get_arg("--amount")
        if not amount:
            raise SystemExit("Missing --amount")
        tx_hash = gateway.fund_pool(parse_ether(amount))
        gateway.wait_for_receipt(tx_hash)
        return {"tx_hash": tx_hash, "status": "Pool funded!"}
    raise SystemExit(f"Unknown command: {cmd}")


def main(argv: List[str]) -> None:
    load_dotenv()
    configure_logging(os.getenv("LOG_LEVEL", "WARNING"))
    try:
        res = run(argv)
    except GuessGameError as e:
        raise SystemExit(f"{e.kind}: {e}")
    print(json.dumps(res, indent=2))


if __name__ == "__main__":
    main(sys.argv)
