from __future__ import annotations

import argparse

from sol_swap_engine.aggregators import jupiter
from sol_swap_engine.config import SOL_MINT, SWAP_AMOUNT_LAMPORTS, USDC_MINT, AppSettings
from sol_swap_engine.keys import load_keypair, parse_fee_bps, parse_pubkey


def run_checks(settings: AppSettings, check_api: bool = True) -> list[tuple[str, bool, str]]:
    """Offline validation of the env, plus one live quote unless ``check_api`` is off."""
    checks: list[tuple[str, bool, str]] = []

    missing = settings.missing_swap_env()
    checks.append(
        (
            "environment",
            not missing,
            f"Missing variables: {', '.join(missing)}" if missing else "All required variables present",
        )
    )

    try:
        kp = load_keypair(settings.private_key or "")
        checks.append(("private key", True, f"Valid, wallet {kp.pubkey()}"))
    except ValueError as e:
        checks.append(("private key", False, str(e)))

    try:
        parse_pubkey(settings.fee_recipient or "")
        checks.append(("fee recipient", True, "Valid address"))
    except ValueError as e:
        checks.append(("fee recipient", False, str(e)))

    try:
        bps = parse_fee_bps(settings.fee_basis_points)
        checks.append(("fee basis points", True, f"{bps} ({bps / 100:.2f}%)"))
    except ValueError as e:
        checks.append(("fee basis points", False, str(e)))

    if check_api:
        try:
            quote = jupiter.get_quote(
                settings.jupiter_quote_url,
                SOL_MINT,
                USDC_MINT,
                SWAP_AMOUNT_LAMPORTS,
                settings.slippage_bps,
                timeout=5,
                retries=1,
            )
            checks.append(("jupiter api", True, f"Quote received: {quote['outAmount']} USDC base units"))
        except Exception as e:
            checks.append(("jupiter api", False, f"Cannot reach Jupiter API: {e}"))
    return checks


def main() -> int:
    p = argparse.ArgumentParser(description="Validate .env settings and Jupiter connectivity")
    p.add_argument("--offline", action="store_true", help="Skip the live Jupiter request")
    args = p.parse_args()

    checks = run_checks(AppSettings(), check_api=not args.offline)
    for name, ok, detail in checks:
        print(f"[{'ok' if ok else 'FAIL'}] {name}: {detail}")
    return 0 if all(ok for _, ok, _ in checks) else 1


if __name__ == "__main__":
    raise SystemExit(main())
