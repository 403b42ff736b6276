"""
sniper_engine CLI

    python -m sniper_engine run --message msg.json [--code strategy.py] [--mode group]
    python -m sniper_engine make-wallet [--out wallet.json]

`run` handles one inbound message through a StrategyWorker and prints every
outbound message as one JSON line on stdout. Logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

from loguru import logger
from solders.keypair import Keypair

from sniper_engine.config.settings import EngineSettings, load_settings
from sniper_engine.engine.worker import StrategyWorker
from sniper_engine.events import Event
from sniper_engine.utils.shutdown import install_signal_handlers


def configure_logging(settings: EngineSettings) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=settings.log_level,
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            rotation="1 day",
            retention="30 days",
            level="DEBUG",
        )


def print_event(event: Event) -> None:
    sys.stdout.write(json.dumps(event.to_message()) + "\n")
    sys.stdout.flush()


async def run_once(settings: EngineSettings, message: dict) -> None:
    worker = StrategyWorker(settings)
    try:
        await worker.handle_message(message, print_event)
    finally:
        await worker.close()


def command_run(args) -> int:
    settings = load_settings(args.env_file)
    configure_logging(settings)
    install_signal_handlers()

    message = json.loads(Path(args.message).read_text(encoding="utf-8"))
    if args.code:
        message["code"] = Path(args.code).read_text(encoding="utf-8")
    if args.mode:
        message["mode"] = args.mode

    logger.info(f"CLI | run | message={args.message} | mode={message.get('mode') or 'per-bot'}")
    asyncio.run(run_once(settings, message))
    return 0


def command_make_wallet(args) -> int:
    kp = Keypair()
    # bytes(kp) is the full 64-byte keypair (seed + pubkey)
    secret = list(bytes(kp))

    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            json.dump(secret, f)
        logger.info(f"WALLET | created | path={os.path.abspath(args.out)}")
    else:
        print(json.dumps(secret))
    logger.info(f"WALLET | pubkey={kp.pubkey()}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="sniper_engine",
        description="Run user trading strategies against a set of Solana wallets",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser_run = subparsers.add_parser("run", help="Handle one inbound message")
    parser_run.add_argument("--message", required=True, help="Path to the inbound message JSON")
    parser_run.add_argument("--code", help="Strategy source file (overrides message.code)")
    parser_run.add_argument("--mode", choices=["per-bot", "group"], help="Override message.mode")
    parser_run.add_argument("--env-file", help="dotenv file with SNIPER_* settings")

    parser_wallet = subparsers.add_parser("make-wallet", help="Generate a 64-byte secret key")
    parser_wallet.add_argument("--out", help="Write the secret key array to this file")

    args = parser.parse_args(argv)

    commands = {
        "run": command_run,
        "make-wallet": command_make_wallet,
    }
    if args.command in commands:
        return commands[args.command](args)
    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
