import json

import pytest

from sniper_engine.__main__ import main, run_once
from sniper_engine.config.settings import EngineSettings


def test_make_wallet_prints_64_byte_secret(capsys: pytest.CaptureFixture) -> None:
    assert main(["make-wallet"]) == 0
    secret = json.loads(capsys.readouterr().out)
    assert len(secret) == 64
    assert all(0 <= b <= 255 for b in secret)


def test_make_wallet_writes_file(tmp_path) -> None:
    out = tmp_path / "wallet.json"
    assert main(["make-wallet", "--out", str(out)]) == 0
    assert len(json.loads(out.read_text(encoding="utf-8"))) == 64


def test_no_command_prints_help(capsys: pytest.CaptureFixture) -> None:
    assert main([]) == 1
    assert "run" in capsys.readouterr().out


@pytest.mark.anyio
async def test_run_once_prints_json_lines(capsys: pytest.CaptureFixture) -> None:
    message = {
        "code": "exports.strategy = lambda wallet, log, ctx: None",
        "bots": [],
        "context": {"rpcUrl": "http://localhost:8899", "token": {"address": "Mint", "decimals": 6}},
    }
    await run_once(EngineSettings(), message)
    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert lines[0] == {"log": "[worker] Received message: mode=per-bot, bots=0"}
    assert lines[-1] == {"log": "[worker] No bots provided – nothing to do."}
