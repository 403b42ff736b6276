import pytest

from sniper_engine.events import BalanceUpdateEvent, ErrorEvent, EventRecorder, LogEvent
from sniper_engine.models import (
    ExecutionMode,
    Invocation,
    Side,
    TradeContext,
    TradeOptions,
    TradeRequest,
    detect_network,
)


def test_network_is_detected_from_rpc_url_when_missing() -> None:
    assert detect_network("https://api.mainnet-beta.solana.com") == "mainnet-beta"
    assert detect_network("https://api.devnet.solana.com") == "devnet"
    ctx = TradeContext.from_dict({"rpcUrl": "https://api.mainnet-beta.solana.com"})
    assert ctx.network == "mainnet-beta"
    assert ctx.is_mainnet


def test_explicit_network_wins_over_rpc_url() -> None:
    ctx = TradeContext.from_dict({"rpcUrl": "https://mainnet.example", "network": "devnet"})
    assert ctx.network == "devnet"
    assert not ctx.is_mainnet


def test_context_parses_host_message() -> None:
    ctx = TradeContext.from_dict(
        {
            "rpcUrl": "https://api.devnet.solana.com",
            "network": "devnet",
            "token": {"address": "Mint1111", "decimals": 6},
            "market": {"lastPrice": 0.4, "currentMarketCap": 1000, "currentLpValue": 50, "externalPrice": 150},
            "walletBalances": {"Addr1": {"sol": 1.5, "token": 20}},
            "isAdvancedMode": True,
            "systemState": {"cpu": 0.1},
            "poolId": "Pool1",
            "minTradeAmount": 0.02,
        }
    )
    assert ctx.token.address == "Mint1111"
    assert ctx.token.decimals == 6
    assert ctx.market.last_price == 0.4
    assert ctx.market.external_price == 150
    assert ctx.wallet_balances["Addr1"].sol == 1.5
    assert ctx.wallet_balances["Addr1"].token == 20
    assert ctx.is_advanced_mode
    assert ctx.system_state == {"cpu": 0.1}
    assert ctx.pool_id == "Pool1"
    assert ctx.extra == {"minTradeAmount": 0.02}
    with pytest.raises(TypeError):
        ctx.extra["minTradeAmount"] = 1


def test_token_without_address_is_treated_as_missing() -> None:
    assert TradeContext.from_dict({"token": {"decimals": 6}}).token is None
    assert TradeContext.from_dict({"token": {"address": "Mint"}}).token.decimals == 0


def test_trade_options_accept_camel_and_snake_case() -> None:
    camel = TradeOptions.from_mapping({"slippageBps": 100, "priorityFeeMicroLamports": 5000, "poolId": "P"})
    snake = TradeOptions.from_mapping({"slippage_bps": 100, "priority_fee_micro_lamports": 5000, "pool_id": "P"})
    assert camel == snake == TradeOptions(100, 5000, "P")


def test_trade_options_fall_back_to_defaults() -> None:
    defaults = TradeOptions(slippage_bps=75, priority_fee_micro_lamports=2000, pool_id="CtxPool")
    assert TradeOptions.from_mapping(None, defaults=defaults) == defaults
    assert TradeOptions.from_mapping({"slippageBps": 10}, defaults=defaults).pool_id == "CtxPool"
    assert TradeOptions.from_mapping({}) == TradeOptions(50, 1000, None)


def test_trade_request_base_units() -> None:
    assert TradeRequest(Side.BUY, 0.5).base_units(6) == 500000


def test_execution_mode_parse() -> None:
    assert ExecutionMode.parse(None) is ExecutionMode.PER_BOT
    assert ExecutionMode.parse("group") is ExecutionMode.GROUP
    with pytest.raises(ValueError):
        ExecutionMode.parse("swarm")


def test_invocation_from_message_defaults() -> None:
    inv = Invocation.from_message({"code": "x = 1", "context": {"rpcUrl": "http://localhost:8899"}})
    assert inv.bots == []
    assert inv.mode is ExecutionMode.PER_BOT
    assert inv.context.network == "devnet"


def test_event_wire_format() -> None:
    assert LogEvent("hi").to_message() == {"log": "hi"}
    assert ErrorEvent("bad").to_message() == {"error": "bad"}
    assert BalanceUpdateEvent("W", sol_change=-0.5).to_message() == {
        "balanceUpdate": {"wallet": "W", "solChange": -0.5}
    }
    assert BalanceUpdateEvent("W", token_change=-3).to_message() == {
        "balanceUpdate": {"wallet": "W", "tokenChange": -3}
    }


def test_event_recorder_views() -> None:
    rec = EventRecorder()
    rec(LogEvent("a"))
    rec(ErrorEvent("b"))
    rec(BalanceUpdateEvent("W", sol_change=-1))
    assert rec.logs == ["a"]
    assert rec.errors == ["b"]
    assert len(rec.balance_updates) == 1
    assert rec.messages()[0] == {"log": "a"}
