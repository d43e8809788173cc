"""Command-line entry point.

Examples:
    venueswap market-status
    venueswap quote --sell 0xUSDC --buy 0xAAPL --sell-amount 100 --symbol AAPL
    venueswap trade --sell 0xUSDC --buy 0xAAPL --sell-amount 100 --symbol AAPL
"""

import argparse
import asyncio
import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import Optional

from venueswap.config import get_settings
from venueswap.cross_chain.market_hours import get_market_status
from venueswap.exceptions import PartialSettlementError, TradingError
from venueswap.models import Network, RoutingStrategy, TradeRequest
from venueswap.orchestrator import TradeOrchestrator

logger = logging.getLogger(__name__)


def _amount(value: str) -> Decimal:
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid amount: {value}") from None
    if amount <= 0:
        raise argparse.ArgumentTypeError(f"amount must be positive: {value}")
    return amount


def _network(value: str) -> Network:
    try:
        return Network.from_name(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="venueswap", description="Quote and trade across market maker and cross-chain access"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("market-status", help="Show cross-chain access market hours")

    for name, help_text in (("quote", "Quote both venues"), ("trade", "Execute a routed trade")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--sell", required=True, help="Token address to sell")
        cmd.add_argument("--buy", required=True, help="Token address to buy")
        amounts = cmd.add_mutually_exclusive_group(required=True)
        amounts.add_argument("--sell-amount", type=_amount, help="Amount to sell")
        amounts.add_argument("--buy-amount", type=_amount, help="Amount to buy")
        cmd.add_argument("--symbol", help="Cross-chain access symbol (e.g. AAPL)")
        if name == "trade":
            cmd.add_argument(
                "--strategy",
                type=RoutingStrategy,
                choices=list(RoutingStrategy),
                help="Routing strategy override",
            )
            cmd.add_argument("--email", help="Email recorded on cross-chain orders")
            cmd.add_argument(
                "--target-network", type=_network, help="Network receiving cross-chain settlement"
            )

    return parser


def _request(args: argparse.Namespace) -> TradeRequest:
    return TradeRequest(
        sell_asset=args.sell,
        buy_asset=args.buy,
        sell_amount=args.sell_amount,
        buy_amount=args.buy_amount,
        symbol=args.symbol,
        strategy=getattr(args, "strategy", None),
        user_email=getattr(args, "email", None),
        target_network=getattr(args, "target_network", None),
    )


async def _quote(args: argparse.Namespace) -> int:
    orchestrator = await TradeOrchestrator.create()
    try:
        quotes = await orchestrator.get_quotes(_request(args))
    finally:
        await orchestrator.close()

    output = {}
    for venue, quote in quotes.items():
        output[venue.value] = (
            {
                "sell_amount": str(quote.sell_amount),
                "buy_amount": str(quote.buy_amount),
                "rate": str(quote.rate),
            }
            if quote
            else None
        )
    print(json.dumps(output, indent=2))
    return 0


async def _trade(args: argparse.Namespace) -> int:
    orchestrator = await TradeOrchestrator.create()
    try:
        result = await orchestrator.trade(_request(args))
    except PartialSettlementError as e:
        logger.error(f"Partial settlement: {e}")
        print(json.dumps({"error": str(e), "pending": e.pending.to_dict()}, indent=2))
        return 2
    except TradingError as e:
        logger.error(f"Trade failed: {e}")
        return 1
    finally:
        await orchestrator.close()

    print(json.dumps(result.to_dict(), indent=2))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "market-status":
        status = get_market_status()
        print(status.message)
        return 0

    if args.command == "quote":
        return asyncio.run(_quote(args))
    return asyncio.run(_trade(args))


if __name__ == "__main__":
    sys.exit(main())
