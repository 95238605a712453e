from __future__ import annotations

import argparse

from loguru import logger
from solders.pubkey import Pubkey

from sol_swap_engine.chains.solana import NetworkService, associated_token_address
from sol_swap_engine.config import LAMPORTS_PER_SOL, SWAP_AMOUNT_LAMPORTS, USDC_MINT, AppSettings
from sol_swap_engine.keys import load_keypair

# Swap plus room for fees and token-account rent
RECOMMENDED_BUFFER_LAMPORTS = 5_000_000


def balance_status(balance: int) -> tuple[bool, str]:
    if balance < SWAP_AMOUNT_LAMPORTS:
        return False, (
            f"Balance is too low. Need at least {SWAP_AMOUNT_LAMPORTS / LAMPORTS_PER_SOL} SOL for swap"
        )
    recommended = SWAP_AMOUNT_LAMPORTS + RECOMMENDED_BUFFER_LAMPORTS
    if balance < recommended:
        return True, (
            f"Balance is low. Recommended at least {recommended / LAMPORTS_PER_SOL} SOL for swap + fees/rent"
        )
    return True, "Sufficient balance for testing"


def report_tokens(network: NetworkService, owner: Pubkey) -> None:
    usdc_account = associated_token_address(owner, Pubkey.from_string(USDC_MINT))
    logger.info("USDC token account: {}", usdc_account)
    usdc = network.get_token_balance(usdc_account)
    if usdc is None:
        logger.info("USDC account doesn't exist yet (needs ~0.002 SOL rent)")
    else:
        logger.info("USDC account exists with balance: {} USDC", usdc)

    rows = network.get_token_accounts(owner)
    if not rows:
        logger.info("No token accounts found")
    for i, row in enumerate(rows, 1):
        logger.info("{}. {} - Balance: {}", i, row["mint"], row["amount"])


def main() -> int:
    p = argparse.ArgumentParser(description="Show the configured wallet's SOL balance")
    p.add_argument("--tokens", action="store_true", help="Also list SPL token accounts")
    args = p.parse_args()

    settings = AppSettings()
    logger.remove()
    logger.add(lambda msg: print(msg, end=""), level=settings.log_level)

    if not settings.private_key:
        logger.error("PRIVATE_KEY is not set")
        return 1
    try:
        keypair = load_keypair(settings.private_key)
        network = NetworkService.create(settings.rpc_endpoint)
        owner = keypair.pubkey()
        logger.info("Wallet address: {}", owner)
        balance = network.get_balance(owner, use_cache=False)
        logger.info("Balance: {:.9f} SOL ({:,} lamports)", balance / LAMPORTS_PER_SOL, balance)
        ok, message = balance_status(balance)
        (logger.info if ok else logger.error)(message)
        if args.tokens:
            report_tokens(network, owner)
    except Exception as e:
        logger.error("Error checking balance: {}", e)
        return 1
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
