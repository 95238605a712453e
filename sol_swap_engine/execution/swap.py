from __future__ import annotations

import base64
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from sol_swap_engine.aggregators import jupiter
from sol_swap_engine.aggregators.quotes import Quote, QuoteService
from sol_swap_engine.chains.solana import NetworkService
from sol_swap_engine.config import (
    LAMPORTS_PER_SOL,
    SOL_MINT,
    SWAP_AMOUNT_LAMPORTS,
    TOKEN_ACCOUNT_RENT_LAMPORTS,
    TX_FEE_BUFFER_LAMPORTS,
    USDC_DECIMALS,
    USDC_MINT,
    AppSettings,
    SwapOptions,
)
from sol_swap_engine.errors import SimulationError, SwapError
from sol_swap_engine.keys import validate_environment

PHASES = (
    "getQuote",
    "createSwapTransaction",
    "simulateTransaction",
    "sendTransaction",
    "confirmTransaction",
    "executeSwap",
    "performSwap",
)


def explorer_url(signature: str) -> str:
    return f"https://solscan.io/tx/{signature}"


@dataclass
class SwapResult:
    signature: str
    quote: Quote
    input_amount_sol: float
    output_amount_usdc: float
    timings: dict[str, float]  # ms per phase
    compute_units: int | None = None


@dataclass
class CoreSwap:
    """Fixed-size SOL -> USDC swap: balance check, quote, build, sign, simulate, send, confirm."""

    network: NetworkService
    quotes: QuoteService
    keypair: Keypair
    fee_recipient: Pubkey
    fee_bps: int
    slippage_bps: int = 50
    options: SwapOptions = field(default_factory=SwapOptions)
    amount: int = SWAP_AMOUNT_LAMPORTS
    confirm_timeout: float = 60.0
    log: Any = field(default=logger, repr=False)
    timings: dict[str, float] = field(default_factory=dict)
    compute_units: int | None = None

    @classmethod
    def create(
        cls,
        settings: AppSettings,
        options: SwapOptions | None = None,
        network: NetworkService | None = None,
        quotes: QuoteService | None = None,
        log: Any = None,
    ) -> CoreSwap:
        log = log or logger
        log.info("Validating environment...")
        keypair, fee_recipient, fee_bps = validate_environment(settings)
        log.info("Environment validation passed")
        return cls(
            network=network or NetworkService.create(settings.rpc_endpoint),
            quotes=quotes or QuoteService.from_settings(settings),
            keypair=keypair,
            fee_recipient=fee_recipient,
            fee_bps=fee_bps,
            slippage_bps=settings.slippage_bps,
            options=options or SwapOptions(),
            log=log,
        )

    @property
    def pubkey(self) -> Pubkey:
        return self.keypair.pubkey()

    @property
    def uses_platform_fee(self) -> bool:
        return self.options.include_platform_fee and self.fee_bps > 0

    @contextmanager
    def _timed(self, phase: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            self.timings[phase] = (time.perf_counter() - start) * 1000

    def check_balance(self) -> int:
        balance = self.network.get_balance(self.pubkey, use_cache=False)
        sol_balance = balance / LAMPORTS_PER_SOL
        need_sol = self.amount / LAMPORTS_PER_SOL
        self.log.info("Wallet: {}", self.pubkey)
        self.log.info("Balance: {:.9f} SOL", sol_balance)

        if balance < self.amount:
            if self.options.include_detailed_balance:
                raise SwapError(
                    f"Insufficient balance for swap. Need {need_sol} SOL, have {sol_balance:.9f} SOL"
                )
            raise SwapError(f"Insufficient balance. Need {need_sol} SOL, have {sol_balance:.9f} SOL")

        if self.options.include_detailed_balance:
            total = self.amount + TOKEN_ACCOUNT_RENT_LAMPORTS + TX_FEE_BUFFER_LAMPORTS
            if balance < total:
                raise SwapError(
                    f"Insufficient balance for swap + fees. Need {total / LAMPORTS_PER_SOL:.6f} SOL total:\n"
                    f"  • Swap amount: {need_sol} SOL\n"
                    f"  • Token account rent: ~{TOKEN_ACCOUNT_RENT_LAMPORTS / LAMPORTS_PER_SOL:.6f} SOL\n"
                    f"  • Transaction fees: ~{TX_FEE_BUFFER_LAMPORTS / LAMPORTS_PER_SOL:.6f} SOL\n"
                    f"  • Current balance: {sol_balance:.9f} SOL\n\n"
                    f"Please add {(total - balance) / LAMPORTS_PER_SOL:.6f} SOL to your wallet."
                )
        return balance

    def get_quote(self) -> Quote:
        self.log.info("Getting quote from Jupiter V6...")
        with self._timed("getQuote"):
            quote = self.quotes.get_quote(
                SOL_MINT,
                USDC_MINT,
                self.amount,
                slippage_bps=self.slippage_bps,
                only_direct_routes=self.options.only_direct_routes,
                platform_fee_bps=self.fee_bps if self.uses_platform_fee else None,
                fee_account=str(self.fee_recipient) if self.uses_platform_fee else None,
                use_cache=False,
            )
        if self.uses_platform_fee:
            self.log.info("   Platform Fee: {} bps to {}", self.fee_bps, self.fee_recipient)
        return quote

    def create_swap_transaction(self, quote: Quote, priority_fee: jupiter.ComputeUnitPrice = "auto") -> str:
        self.log.info("Creating swap transaction...")
        with self._timed("createSwapTransaction"):
            return self.quotes.create_swap_transaction(
                quote,
                str(self.pubkey),
                use_shared_accounts=self.options.use_shared_accounts,
                fee_account=str(self.fee_recipient) if self.uses_platform_fee else None,
                compute_unit_price_micro_lamports=priority_fee,
            )

    def sign(self, swap_tx_b64: str) -> VersionedTransaction:
        unsigned = VersionedTransaction.from_bytes(base64.b64decode(swap_tx_b64))
        return VersionedTransaction(unsigned.message, [self.keypair])

    def _log_simulation(self, result) -> None:
        if result is None:
            return
        self.log.info("Simulation details:")
        self.log.info("   Compute units consumed: {}", result.units_consumed or "N/A")
        tail = list(result.logs or [])[-5:]
        self.log.info("   Logs: {}", "\n         ".join(tail) if tail else "No logs")

    def execute_swap(self, swap_tx_b64: str) -> str:
        self.log.info("Signing and sending transaction...")
        detailed = self.options.include_detailed_balance
        with self._timed("executeSwap"):
            try:
                tx = self.sign(swap_tx_b64)

                if self.options.simulate:
                    self.log.info("Simulating transaction...")
                    try:
                        with self._timed("simulateTransaction"):
                            sim = self.network.simulate_transaction(tx)
                    except SimulationError as e:
                        if detailed:
                            self._log_simulation(e.result)
                            self.log.error("Full simulation error: {}", e.result)
                        raise
                    self.compute_units = sim.units_consumed
                    if detailed:
                        self._log_simulation(sim)
                    self.log.info("Simulation successful")

                with self._timed("sendTransaction"):
                    signature = str(self.network.send_transaction(tx))
                self.log.info("Transaction sent: {}", signature)

                self.log.info("Waiting for confirmation...")
                with self._timed("confirmTransaction"):
                    self.network.confirm_transaction(signature, timeout=self.confirm_timeout)
                return signature
            except Exception as e:
                raise SwapError(f"Transaction execution failed: {e}") from e

    def perform_swap(self, priority_fee: jupiter.ComputeUnitPrice = "auto") -> SwapResult:
        self.timings = {}
        self.compute_units = None
        with self._timed("performSwap"):
            try:
                self.log.info("Starting Jupiter V6 SOL -> USDC swap...")
                self.check_balance()
                quote = self.get_quote()
                swap_tx = self.create_swap_transaction(quote, priority_fee)
                signature = self.execute_swap(swap_tx)
            except Exception as e:
                self.log.error("Swap failed: {}", e)
                raise

        result = SwapResult(
            signature=signature,
            quote=quote,
            input_amount_sol=self.amount / LAMPORTS_PER_SOL,
            output_amount_usdc=quote.output_amount / 10**USDC_DECIMALS,
            timings=dict(self.timings),
            compute_units=self.compute_units,
        )
        self.log.info("Swap completed successfully!")
        self.log.info("Explorer: {}", explorer_url(signature))
        self.log.info(
            "Swapped: {} SOL -> {:.6f} USDC", result.input_amount_sol, result.output_amount_usdc
        )
        if self.uses_platform_fee:
            self.log.info("Platform Fee: {} bps paid to {}", self.fee_bps, self.fee_recipient)
        return result
