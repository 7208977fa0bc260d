"""
run_mint.py - Mint test USDC and report the reconciled outcome.

Prints one JSON line per status change and exits 0 when the mint is
confirmed (by receipt or by the Transfer event), 1 when it failed, 2 on
setup errors.

Live mode reads secrets from the environment (or .env):
    SNAPBOUNTY_PRIVATE_KEY   signer key (required)
    SNAPBOUNTY_RPC_URL       overrides the chain's public RPC

Dry run uses in-memory adapters:
    python run_mint.py --dry-run --simulate feed --grace-seconds 5
"""

import argparse
import asyncio
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger

from infrastructure.config.app_config import AppConfig
from src.adapters.event_feed.in_memory import InMemoryEventFeed
from src.adapters.ledger.in_memory import InMemoryLedgerClient
from src.adapters.serialization.json_codec import encode_json
from src.application.services.transaction_reconciler import TransactionOutcomeReconciler
from src.domain.errors import PreconditionError
from src.domain.events.contract import ContractEvent
from src.domain.models.primitives import ZERO_ADDRESS, TokenAmount
from src.domain.operations import MintUsdc

DRY_RUN_ACTOR = "0x000000000000000000000000000000000000dEaD"
SIMULATIONS = ("receipt", "feed", "timeout", "reject")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mint test USDC with reconciled status reporting")
    parser.add_argument("--amount", default=None, help="USDC amount (default from config, 10000)")
    parser.add_argument("--to", default=None, help="Recipient address (default: signer address)")
    parser.add_argument("--settings", default="settings.toml", help="TOML settings file")
    parser.add_argument("--chain-id", type=int, default=None)
    parser.add_argument("--grace-seconds", type=float, default=None)
    parser.add_argument("--dry-run", action="store_true", help="Use in-memory ledger and feed")
    parser.add_argument("--simulate", choices=SIMULATIONS, default="receipt", help="Dry-run outcome")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def _dry_run_hook(ledger: InMemoryLedgerClient, feed: InMemoryEventFeed, mode: str):
    """Plays the chain for a dry run once the mint is submitted."""

    def _on_submit(action, handle):
        if mode == "receipt":
            ledger.confirm(handle)
            return
        ledger.fail(handle, "timeout: receipt not found")
        if mode == "feed":
            recipient, units = action.args
            feed.emit(
                ContractEvent.create(
                    contract_address=action.contract_address,
                    name="Transfer",
                    args={"from": ZERO_ADDRESS, "to": recipient, "value": units},
                    source="dry-run",
                    tx_hash=handle.tx_hash,
                )
            )

    return _on_submit


def _build_adapters(args: argparse.Namespace, cfg: AppConfig):
    contracts = cfg.chain.contracts()
    if args.dry_run:
        feed = InMemoryEventFeed()
        ledger = InMemoryLedgerClient(
            reject_with="insufficient funds for gas" if args.simulate == "reject" else None,
        )
        ledger.on_submit = _dry_run_hook(ledger, feed, args.simulate)
        return ledger, feed, args.to or DRY_RUN_ACTOR

    from src.adapters.event_feed.web3_log_feed import Web3LogFeed
    from src.adapters.ledger.web3_ledger import Web3LedgerClient

    private_key = os.getenv("SNAPBOUNTY_PRIVATE_KEY", "").strip()
    if not private_key:
        raise PreconditionError("SNAPBOUNTY_PRIVATE_KEY not set")
    rpc_url = os.getenv("SNAPBOUNTY_RPC_URL", "").strip() or contracts.rpc_url

    ledger = Web3LedgerClient(
        rpc_url=rpc_url,
        private_key=private_key,
        chain_id=contracts.chain_id,
        receipt_timeout=cfg.reconciler.receipt_timeout_seconds,
        poll_latency=cfg.reconciler.receipt_poll_seconds,
    )
    feed = Web3LogFeed(
        rpc_url=rpc_url,
        poll_interval=cfg.feed.poll_interval_seconds,
        confirmations=cfg.feed.confirmations,
        max_block_range=cfg.feed.max_block_range,
    )
    return ledger, feed, args.to or ledger.address


async def run(args: argparse.Namespace) -> int:
    load_dotenv()
    cfg = AppConfig.load(args.settings)
    if args.chain_id is not None:
        cfg.chain.chain_id = args.chain_id
    contracts = cfg.chain.contracts()

    grace = args.grace_seconds if args.grace_seconds is not None else cfg.reconciler.grace_seconds
    operation = MintUsdc(chain=contracts, grace_seconds=grace, default_amount=cfg.reconciler.default_mint_amount)

    try:
        ledger, feed, actor = _build_adapters(args, cfg)
    except PreconditionError as exc:
        logger.error(f"FATAL: {exc.reason}")
        return 2

    reconciler = TransactionOutcomeReconciler(ledger, feed, operation)
    reconciler.add_listener(lambda status: print(encode_json(status), flush=True))

    try:
        try:
            reconciler.start(actor, args.amount)
        except (PreconditionError, ValueError) as exc:
            logger.error(f"FATAL: {exc}")
            return 2
        status = await reconciler.wait_until_settled(timeout=cfg.reconciler.settle_timeout_seconds)

        if status.is_confirmed:
            try:
                units = await ledger.balance_of(contracts.usdc, actor)
            except NotImplementedError:
                units = None
            if units is not None:
                logger.info(f"BALANCE | {actor} | {TokenAmount.from_units(units)} USDC")
            return 0
        logger.error(f"MINT_FAILED | {status.reason} | {status.error.failure_reason.value if status.error else 'n/a'}")
        return 1
    except asyncio.TimeoutError:
        logger.error("MINT_UNSETTLED | no outcome before settle timeout")
        return 1
    finally:
        await reconciler.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logger.remove()
    logger.add(sys.stderr, level=args.log_level.upper())
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
