#!/usr/bin/env python3
"""PromptHash invariant checks against the market parameters and a state file."""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional


ROOT = Path(__file__).resolve().parents[1]
PARAMS_PATH = ROOT / "config" / "market_params.json"
BASIS_POINTS = 10_000
STATE_VERSION = 1


def load_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _is_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def check_params(params: dict, errors: list[str]) -> None:
    """Validate bootstrap parameters."""
    market = params.get("marketplace")
    if not market:
        errors.append("market_params missing section: marketplace")
        return
    for key in ("admin_id", "fee_recipient", "operator_id"):
        if not str(market.get(key, "")).strip():
            errors.append(f"marketplace.{key} must be non-empty")
    fee_bps = market.get("fee_bps")
    if not _is_count(fee_bps) or fee_bps > BASIS_POINTS:
        errors.append(f"marketplace.fee_bps must be in [0, {BASIS_POINTS}], got {fee_bps!r}")
    operator = market.get("operator_id")
    if operator in (market.get("admin_id"), market.get("fee_recipient")):
        errors.append("marketplace.operator_id must differ from admin_id and fee_recipient")

    token = params.get("identity_token", {})
    if not str(token.get("symbol", "")).strip():
        errors.append("identity_token.symbol must be non-empty")

    asset = params.get("payment_asset", {})
    if not _is_count(asset.get("decimals", 0)):
        errors.append("payment_asset.decimals must be a non-negative integer")


def check_state(state: dict, errors: list[str]) -> None:
    """Validate a persisted marketplace snapshot."""
    if state.get("version") != STATE_VERSION:
        errors.append(f"state version must be {STATE_VERSION}, got {state.get('version')!r}")
        return

    # --- Record invariants ---
    records = state.get("records", {})
    counter = records.get("counter")
    if not _is_count(counter):
        errors.append(f"record counter must be a non-negative integer, got {counter!r}")
        counter = None
    seen: set[int] = set()
    for record in records.get("records", []):
        token_id = record.get("token_id")
        if token_id in seen:
            errors.append(f"duplicate record id {token_id}")
        seen.add(token_id)
        if counter is not None and (not _is_count(token_id) or token_id >= counter):
            errors.append(f"record id {token_id!r} is not below counter {counter}")
        if record.get("sold") and record.get("for_sale"):
            errors.append(f"record {token_id} is sold but still for sale")
        if not _is_count(record.get("price")):
            errors.append(f"record {token_id} has invalid price {record.get('price')!r}")
        if not str(record.get("owner", "")).strip():
            errors.append(f"record {token_id} has no owner")

    # --- Fee invariants ---
    fees = state.get("fees", {})
    fee_bps = fees.get("fee_bps")
    if not _is_count(fee_bps) or fee_bps > BASIS_POINTS:
        errors.append(f"fees.fee_bps must be in [0, {BASIS_POINTS}], got {fee_bps!r}")
    if not str(fees.get("fee_recipient", "")).strip():
        errors.append("fees.fee_recipient must be non-empty")

    # --- Admin invariants ---
    admin = state.get("admin", {})
    if not str(admin.get("admin", "")).strip():
        errors.append("admin.admin must be non-empty")
    if admin.get("pending_admin") is not None and admin.get("pending_admin") == admin.get("admin"):
        errors.append("admin.pending_admin cannot be the current administrator")

    # --- Ledger invariants (only when the in-memory ledgers are persisted) ---
    identity = state.get("identity_ledger")
    if identity:
        next_id = identity.get("next_id")
        if counter is not None and next_id != counter:
            errors.append(
                f"identity ledger next_id {next_id!r} does not match record counter {counter}"
            )
        for token_key in identity.get("owners", {}):
            if counter is not None and int(token_key) >= counter:
                errors.append(f"token {token_key} is held but was never recorded")

    payment = state.get("payment_ledger")
    if payment:
        for account, amount in payment.get("balances", {}).items():
            if not _is_count(amount):
                errors.append(f"balance of {account} must be >= 0, got {amount!r}")
        for allowance in payment.get("allowances", []):
            if not _is_count(allowance.get("amount")):
                errors.append(
                    f"allowance {allowance.get('owner')}->{allowance.get('spender')} "
                    f"must be >= 0, got {allowance.get('amount')!r}"
                )


def check(params_path: Path = PARAMS_PATH, state_path: Optional[Path] = None) -> int:
    errors: list[str] = []

    check_params(load_json(params_path), errors)
    if state_path is not None:
        check_state(load_json(state_path), errors)

    if errors:
        print("Invariant check failed:")
        for err in errors:
            print(f"- {err}")
        return 1

    print("Invariant check passed.")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--params", type=Path, default=PARAMS_PATH)
    parser.add_argument("--state", type=Path, default=None)
    cli_args = parser.parse_args()
    raise SystemExit(check(cli_args.params, cli_args.state))
