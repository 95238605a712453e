from __future__ import annotations

import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from sol_swap_engine.aggregators.quotes import QuoteService
from sol_swap_engine.chains.solana import NetworkService
from sol_swap_engine.config import LAMPORTS_PER_SOL, AppSettings, SwapOptions
from sol_swap_engine.errors import JupiterError
from sol_swap_engine.execution.swap import CoreSwap, explorer_url
from sol_swap_engine.keys import load_keypair, parse_fee_bps, parse_pubkey

MIN_BALANCE_SOL = 0.001
DEFAULT_RPC = "https://api.mainnet-beta.solana.com"

app = FastAPI(title="Sol Swap Engine API")
app.add_middleware(
    CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"]
)
settings = AppSettings()

# Server swaps skip simulation and always route directly with the platform fee
SERVER_SWAP_OPTIONS = SwapOptions(only_direct_routes=True, include_platform_fee=True, simulate=False)


class SwapRequest(BaseModel):
    # loosely typed so that bad values reach the key and fee checks as 400s
    privateKey: Any = None
    feeRecipient: Any = None
    feeBps: Any = None
    rpcEndpoint: Any = None


def make_network(rpc_endpoint: str) -> NetworkService:
    return NetworkService.create(rpc_endpoint)


def make_quotes() -> QuoteService:
    return QuoteService.from_settings(settings)


class _RequestLog:
    """Collects every message logged while the request's swap_id is in context."""

    def __init__(self):
        self.swap_id = uuid.uuid4().hex
        self.lines: list[str] = []
        self.log = logger.bind(swap_id=self.swap_id)
        self._sink_id: int | None = None

    def __enter__(self) -> _RequestLog:
        self._sink_id = logger.add(
            lambda m: self.lines.append(m.record["message"]),
            level="DEBUG",
            filter=lambda r: r["extra"].get("swap_id") == self.swap_id,
        )
        return self

    def __exit__(self, *exc):
        if self._sink_id is not None:
            logger.remove(self._sink_id)


def _error(status: int, message: str, logs: list[str]) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message, "logs": logs})


@app.exception_handler(RequestValidationError)
def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error(400, "Invalid request body", [])


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/swap")
def swap(req: SwapRequest):
    with _RequestLog() as rl, logger.contextualize(swap_id=rl.swap_id):
        log = rl.log
        if not req.privateKey or not req.feeRecipient or req.feeBps in (None, ""):
            return _error(400, "Missing required fields", rl.lines)
        try:
            keypair = load_keypair(req.privateKey)
            fee_recipient = parse_pubkey(req.feeRecipient)
            fee_bps = parse_fee_bps(req.feeBps)
        except ValueError as e:
            return _error(400, str(e), rl.lines)

        endpoint = str(req.rpcEndpoint or DEFAULT_RPC)
        network = None
        try:
            network = make_network(endpoint)
            log.info("Connected to: {}", endpoint)
            swapper = CoreSwap(
                network=network,
                quotes=make_quotes(),
                keypair=keypair,
                fee_recipient=fee_recipient,
                fee_bps=fee_bps,
                slippage_bps=settings.slippage_bps,
                options=SERVER_SWAP_OPTIONS,
                log=log,
            )

            balance = network.get_balance(keypair.pubkey(), use_cache=False)
            sol = balance / LAMPORTS_PER_SOL
            log.info("Wallet balance: {} SOL", sol)
            if sol < MIN_BALANCE_SOL:
                return _error(400, "Insufficient SOL balance. Please fund your wallet.", rl.lines)

            try:
                quote = swapper.get_quote()
            except JupiterError as e:
                msg = str(e)
                if not msg.startswith(("Quote request failed", "Jupiter API error")):
                    msg = f"Quote request failed: {msg}"
                return _error(500, msg, rl.lines)

            try:
                swap_tx = swapper.create_swap_transaction(quote, priority_fee="auto")
            except JupiterError as e:
                msg = str(e)
                if not msg.startswith(("Swap transaction creation failed", "Jupiter swap API error")):
                    msg = f"Swap transaction creation failed: {msg}"
                return _error(500, msg, rl.lines)

            signature = swapper.execute_swap(swap_tx)
        except Exception as e:
            logger.exception("Swap request {} failed", rl.swap_id)
            return _error(500, str(e), rl.lines)
        finally:
            if network is not None:
                network.close()

        log.info("Swap completed successfully!")
        log.info("Explorer: {}", explorer_url(signature))
        return {"success": True, "signature": signature, "logs": rl.lines}


def main():
    import uvicorn

    logger.remove()
    logger.add(lambda msg: print(msg, end=""), level=settings.log_level)
    logger.info("Sol swap backend listening on port {}", settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
