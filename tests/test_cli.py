"""Tests for the command-line entry point."""

import json
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from venueswap.cli import build_parser, main
from venueswap.cross_chain.market_hours import MarketStatus
from venueswap.exceptions import NoLiquidityError
from venueswap.models import Network, RoutingStrategy, TradeResult, Venue


class TestParser:
    """Tests for argument parsing."""

    def test_trade_arguments(self):
        """Test trade options are parsed into typed values."""
        args = build_parser().parse_args(
            [
                "trade",
                "--sell", "0xa",
                "--buy", "0xb",
                "--sell-amount", "12.5",
                "--symbol", "AAPL",
                "--strategy", "market_maker_only",
                "--target-network", "base",
            ]
        )

        assert args.sell_amount == Decimal("12.5")
        assert args.buy_amount is None
        assert args.strategy == RoutingStrategy.MARKET_MAKER_ONLY
        assert args.target_network == Network.BASE

    def test_amounts_are_exclusive(self):
        """Test sell and buy amounts cannot both be given."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(
                ["quote", "--sell", "0xa", "--buy", "0xb", "--sell-amount", "1", "--buy-amount", "1"]
            )

    def test_amount_must_be_positive(self):
        """Test non-positive amounts are rejected."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["quote", "--sell", "0xa", "--buy", "0xb", "--sell-amount", "0"])


class TestMain:
    """Tests for command dispatch."""

    def test_market_status(self, capsys):
        """Test market-status prints the status message."""
        with patch(
            "venueswap.cli.get_market_status",
            return_value=MarketStatus(False, "Market is closed. Opens in 1h 0m"),
        ):
            assert main(["market-status"]) == 0

        assert "Market is closed" in capsys.readouterr().out

    def test_trade_prints_result(self, capsys):
        """Test a successful trade prints the result as JSON."""
        orchestrator = MagicMock()
        orchestrator.trade = AsyncMock(
            return_value=TradeResult(
                tx_hash="0xabc",
                sell_asset="0xa",
                sell_amount=Decimal("1"),
                buy_asset="0xb",
                buy_amount=Decimal("2"),
                venue=Venue.MARKET_MAKER,
                network=Network.POLYGON,
            )
        )
        orchestrator.close = AsyncMock()

        with patch("venueswap.cli.TradeOrchestrator.create", AsyncMock(return_value=orchestrator)):
            code = main(["trade", "--sell", "0xa", "--buy", "0xb", "--sell-amount", "1"])

        assert code == 0
        assert json.loads(capsys.readouterr().out)["tx_hash"] == "0xabc"
        orchestrator.close.assert_awaited_once()

    def test_trade_failure_exit_code(self):
        """Test a failed trade exits non-zero."""
        orchestrator = MagicMock()
        orchestrator.trade = AsyncMock(side_effect=NoLiquidityError("No venues available"))
        orchestrator.close = AsyncMock()

        with patch("venueswap.cli.TradeOrchestrator.create", AsyncMock(return_value=orchestrator)):
            code = main(["trade", "--sell", "0xa", "--buy", "0xb", "--buy-amount", "1"])

        assert code == 1
        orchestrator.close.assert_awaited_once()
