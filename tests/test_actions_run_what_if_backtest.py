"""
Tests for the run_what_if_backtest command-line action.

**Testing philosophy**: settings and wiring are patched out, so the tests
exercise argument handling, output and exit codes without any network.
"""

import datetime as dt
import json
import sys
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

# Add project root to path so we can import actions module
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from actions.run_what_if_backtest import exit_code_for, main
from src.backtesting.errors import InvalidAmount, RateUnavailable
from src.backtesting.results import QuantityBuyResult
from src.config.settings import BacktestSettings, Settings


@pytest.fixture
def settings():
    return Settings(backtest=BacktestSettings(stock_provider="yfinance", log_level="WARNING"))


@pytest.mark.parametrize("status, code", [(200, 0), (400, 1), (404, 1), (502, 2), (500, 2)])
def test_exit_code_for(status, code):
    assert exit_code_for(status) == code


@patch("actions.run_what_if_backtest.configure_logging")
@patch("actions.run_what_if_backtest.build_orchestrator")
@patch("actions.run_what_if_backtest.get_settings")
def test_success_prints_record(mock_get_settings, mock_build, mock_logging, settings, capsys):
    mock_get_settings.return_value = settings
    orchestrator = Mock()
    orchestrator.run.return_value = QuantityBuyResult(
        ticker="BTC",
        buy_date=dt.date(2024, 1, 2),
        asset_type="crypto",
        quantity=0.5,
        close_price=45000.0,
    )
    mock_build.return_value = orchestrator

    code = main(["/0.5/BTC/on/2024-01-02", "--type", "crypto"])

    assert code == 0
    record = json.loads(capsys.readouterr().out)
    assert record["type"] == "crypto"
    assert record["closePrice"] == 45000.0
    assert orchestrator.run.call_args.args[0].asset_type == "crypto"
    mock_logging.assert_called_once_with("WARNING")


@patch("actions.run_what_if_backtest.configure_logging")
@patch("actions.run_what_if_backtest.build_orchestrator")
@patch("actions.run_what_if_backtest.get_settings")
def test_log_level_flag_overrides_settings(mock_get_settings, mock_build, mock_logging, settings):
    mock_get_settings.return_value = settings
    mock_build.return_value.run.side_effect = InvalidAmount("'abc' is not a number")

    code = main(["/abc/AAPL/on/2025-07-18", "--log-level", "DEBUG"])

    assert code == 1
    mock_logging.assert_called_once_with("DEBUG")


@patch("actions.run_what_if_backtest.configure_logging")
@patch("actions.run_what_if_backtest.build_orchestrator")
@patch("actions.run_what_if_backtest.get_settings")
def test_upstream_failure_exit_code(mock_get_settings, mock_build, mock_logging, settings, capsys):
    mock_get_settings.return_value = settings
    mock_build.return_value.run.side_effect = RateUnavailable("Frankfurter rate limit exceeded")

    code = main(["/1000EUR/of/AAPL/on/2025-07-18"])

    assert code == 2
    record = json.loads(capsys.readouterr().out)
    assert record == {
        "error": "Failed to fetch FX rate",
        "details": "Frankfurter rate limit exceeded",
    }


@patch("actions.run_what_if_backtest.configure_logging")
@patch("actions.run_what_if_backtest.build_orchestrator")
@patch("actions.run_what_if_backtest.get_settings")
def test_unknown_route(mock_get_settings, mock_build, mock_logging, settings, capsys):
    mock_get_settings.return_value = settings

    code = main(["/10/AAPL"])

    assert code == 1
    assert json.loads(capsys.readouterr().out)["error"] == "Not found"


@patch("actions.run_what_if_backtest.get_settings")
def test_configuration_error(mock_get_settings, capsys):
    mock_get_settings.side_effect = ValueError("ALPHAVANTAGE_API_KEY is required but not set.")

    code = main(["/10/AAPL/on/2025-07-18"])

    assert code == 2
    assert "ALPHAVANTAGE_API_KEY" in capsys.readouterr().err
