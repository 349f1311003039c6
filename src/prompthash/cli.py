"""PromptHash CLI — command-line interface for the marketplace.

Usage:
    prompthash status
    prompthash --as alice create --title "Sunset" --category art --price 10000
    prompthash --as alice list --id 0 --price 10000
    prompthash --as admin fund --to bob --amount 50000
    prompthash --as bob approve --amount 10000
    prompthash --as bob buy --id 0
    prompthash check-invariants

The caller identity is taken from --as. Authenticating that identity is
the job of whatever surface wraps this CLI.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Optional

from prompthash.config import DEFAULT_CONFIG_DIR, ROOT, MarketConfig
from prompthash.errors import InvalidConfigError, StorageFault
from prompthash.models.result import ServiceResult
from prompthash.persistence.event_log import EventLog
from prompthash.persistence.state_store import StateStore
from prompthash.service import PromptHashService

logger = logging.getLogger(__name__)

DEFAULT_DATA = ROOT / "data"
STATE_FILENAME = "state.json"
EVENTS_FILENAME = "events.jsonl"


def _data_dir(args: argparse.Namespace, config: MarketConfig) -> Path:
    return args.data or config.data_dir or DEFAULT_DATA


def _make_service(args: argparse.Namespace) -> PromptHashService:
    """Create a PromptHashService with durable persistence."""
    config = MarketConfig.from_config_dir(args.config)
    data_dir = _data_dir(args, config)
    data_dir.mkdir(parents=True, exist_ok=True)
    logger.debug("Using config %s, data %s", args.config, data_dir)
    return PromptHashService(
        config,
        event_log=EventLog(storage_path=data_dir / EVENTS_FILENAME),
        state_store=StateStore(storage_path=data_dir / STATE_FILENAME),
    )


def _require_caller(args: argparse.Namespace) -> Optional[str]:
    if not args.caller:
        print(f"Failed: '{args.command}' needs a caller identity (--as)", file=sys.stderr)
        return None
    return args.caller


def _report(
    result: ServiceResult,
    render: Callable[[dict[str, Any]], str],
) -> int:
    if result.success:
        print(render(result.data))
        if "warning" in result.data:
            print(f"Warning: {result.data['warning']}", file=sys.stderr)
        return 0
    kind = result.error_kind.value if result.error_kind else "error"
    print(f"Failed ({kind}): {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def _as_json(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2, sort_keys=True)


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    print(_as_json(service.status()))
    return 0


def cmd_create(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if caller is None:
        return 1
    service = _make_service(args)
    result = service.create_prompt(
        creator=caller,
        title=args.title,
        category=args.category,
        image_url=args.image_url,
        description=args.description,
        price=args.price,
    )
    return _report(result, lambda d: f"Created prompt: {d['token_id']} (owner: {d['owner']})")


def cmd_list(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if caller is None:
        return 1
    service = _make_service(args)
    result = service.list_prompt_for_sale(caller, args.id, args.price)
    return _report(result, lambda d: f"Listed prompt {d['token_id']} at {d['price']}")


def cmd_buy(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if caller is None:
        return 1
    service = _make_service(args)
    return _report(service.buy_prompt(caller, args.id), _as_json)


def cmd_show(args: argparse.Namespace) -> int:
    service = _make_service(args)
    record = service.get_prompt(args.id)
    if record is None:
        print(f"Prompt not found: {args.id}", file=sys.stderr)
        return 1
    data = record.to_dict()
    data["state"] = record.state.value
    print(_as_json(data))
    return 0


def cmd_prompts(args: argparse.Namespace) -> int:
    service = _make_service(args)
    for record in service.get_all_prompts():
        print(
            f"{record.token_id:>6}  {record.state.value:<8}  {record.price:>12}  "
            f"{record.owner}  {record.title}"
        )
    return 0


def cmd_fund(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if caller is None:
        return 1
    service = _make_service(args)
    result = service.fund_account(caller, args.to, args.amount)
    return _report(result, lambda d: f"Funded {d['account']} with {d['amount']}")


def cmd_approve(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if caller is None:
        return 1
    service = _make_service(args)
    result = service.approve_payment(caller, args.amount)
    return _report(result, lambda d: f"Approved {d['spender']} to spend {d['amount']}")


def cmd_balance(args: argparse.Namespace) -> int:
    account = args.account or _require_caller(args)
    if account is None:
        return 1
    service = _make_service(args)
    print(f"{account}: {service.balance(account)}")
    return 0


def cmd_set_fee(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if caller is None:
        return 1
    service = _make_service(args)
    result = service.set_fee_percentage(caller, args.bps)
    return _report(result, lambda d: f"Fee set to {d['fee_bps']} basis points")


def cmd_set_fee_recipient(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if caller is None:
        return 1
    service = _make_service(args)
    result = service.set_fee_recipient(caller, args.recipient)
    return _report(result, lambda d: f"Fee recipient set to {d['fee_recipient']}")


def cmd_nominate_admin(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if caller is None:
        return 1
    service = _make_service(args)
    result = service.nominate_admin(caller, args.successor)
    return _report(result, lambda d: f"Nominated {d['pending_admin']} as administrator")


def cmd_accept_admin(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if caller is None:
        return 1
    service = _make_service(args)
    result = service.accept_admin(caller)
    return _report(result, lambda d: f"{d['admin']} is now the administrator")


def cmd_cancel_nomination(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if caller is None:
        return 1
    service = _make_service(args)
    result = service.cancel_admin_nomination(caller)
    return _report(result, lambda d: "Pending nomination cancelled")


def cmd_upgrade(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if caller is None:
        return 1
    service = _make_service(args)
    result = service.upgrade(caller, args.code_hash)
    return _report(result, lambda d: f"Recorded code hash {d['code_hash']}")


def cmd_burn(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if caller is None:
        return 1
    service = _make_service(args)
    result = service.burn_token(caller, args.id)
    return _report(result, lambda d: f"Burned token {d['token_id']}")


def cmd_reconcile(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.reconcile_owner(args.id), _as_json)


def cmd_events(args: argparse.Namespace) -> int:
    service = _make_service(args)
    log = service.event_log
    assert log is not None
    events = log.events() if args.id is None else log.events_for_token(args.id)
    for event in events:
        print(json.dumps(event.to_dict(), sort_keys=True))
    return 0


def cmd_check_invariants(args: argparse.Namespace) -> int:
    """Run marketplace invariant checks."""
    # Import and run the standalone check_invariants tool
    tools_dir = ROOT / "tools"
    sys.path.insert(0, str(tools_dir))
    from check_invariants import check

    config = MarketConfig.from_config_dir(args.config)
    state_path = _data_dir(args, config) / STATE_FILENAME
    return check(
        params_path=args.config / "market_params.json",
        state_path=state_path if state_path.exists() else None,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prompthash",
        description="PromptHash — prompt token marketplace CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_DIR,
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=None,
        help="Directory for state.json and events.jsonl (default: data/)",
    )
    parser.add_argument(
        "--as", dest="caller", default=None,
        help="Identity the command acts as",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging",
    )
    sub = parser.add_subparsers(dest="command")

    # status
    sub.add_parser("status", help="Show marketplace status")

    # create
    p_create = sub.add_parser("create", help="Mint a new prompt token")
    p_create.add_argument("--title", required=True, help="Prompt title")
    p_create.add_argument("--category", default="", help="Prompt category")
    p_create.add_argument("--image-url", default="", help="Preview image URL")
    p_create.add_argument("--description", default="", help="Prompt description")
    p_create.add_argument("--price", type=int, required=True, help="Price in smallest units")

    # list
    p_list = sub.add_parser("list", help="List a prompt for sale")
    p_list.add_argument("--id", type=int, required=True, help="Token ID")
    p_list.add_argument("--price", type=int, required=True, help="Price in smallest units")

    # buy
    p_buy = sub.add_parser("buy", help="Buy a listed prompt")
    p_buy.add_argument("--id", type=int, required=True, help="Token ID")

    # show / prompts
    p_show = sub.add_parser("show", help="Show one prompt record")
    p_show.add_argument("--id", type=int, required=True, help="Token ID")
    sub.add_parser("prompts", help="List all prompt records")

    # payment asset
    p_fund = sub.add_parser("fund", help="Mint payment asset to an account (issuer only)")
    p_fund.add_argument("--to", required=True, help="Receiving account")
    p_fund.add_argument("--amount", type=int, required=True, help="Amount in smallest units")

    p_approve = sub.add_parser("approve", help="Approve the marketplace to spend your funds")
    p_approve.add_argument("--amount", type=int, required=True, help="Allowance in smallest units")

    p_balance = sub.add_parser("balance", help="Show a payment asset balance")
    p_balance.add_argument("--account", help="Account (default: --as identity)")

    # administration
    p_fee = sub.add_parser("set-fee", help="Set the protocol fee (admin only)")
    p_fee.add_argument("--bps", type=int, required=True, help="Fee in basis points (0-10000)")

    p_recipient = sub.add_parser("set-fee-recipient", help="Set the fee recipient (admin only)")
    p_recipient.add_argument("--recipient", required=True, help="Fee recipient identity")

    p_nominate = sub.add_parser("nominate-admin", help="Nominate a successor administrator")
    p_nominate.add_argument("--successor", required=True, help="Successor identity")

    sub.add_parser("accept-admin", help="Accept a pending administrator nomination")
    sub.add_parser("cancel-nomination", help="Cancel a pending administrator nomination")

    p_upgrade = sub.add_parser("upgrade", help="Record a new code hash (admin only)")
    p_upgrade.add_argument("--code-hash", required=True, help="SHA-256 hex digest")

    # tokens
    p_burn = sub.add_parser("burn", help="Burn a prompt token")
    p_burn.add_argument("--id", type=int, required=True, help="Token ID")

    p_reconcile = sub.add_parser("reconcile", help="Compare recorded owner with ledger holder")
    p_reconcile.add_argument("--id", type=int, required=True, help="Token ID")

    p_events = sub.add_parser("events", help="Print the event log")
    p_events.add_argument("--id", type=int, default=None, help="Only events for this token")

    # check-invariants
    sub.add_parser("check-invariants", help="Run marketplace invariant checks")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "create": cmd_create,
        "list": cmd_list,
        "buy": cmd_buy,
        "show": cmd_show,
        "prompts": cmd_prompts,
        "fund": cmd_fund,
        "approve": cmd_approve,
        "balance": cmd_balance,
        "set-fee": cmd_set_fee,
        "set-fee-recipient": cmd_set_fee_recipient,
        "nominate-admin": cmd_nominate_admin,
        "accept-admin": cmd_accept_admin,
        "cancel-nomination": cmd_cancel_nomination,
        "upgrade": cmd_upgrade,
        "burn": cmd_burn,
        "reconcile": cmd_reconcile,
        "events": cmd_events,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except StorageFault as e:
        logger.error("Stored state is unusable: %s", e)
        print(f"Fatal: {e}", file=sys.stderr)
        return 2
    except InvalidConfigError as e:
        logger.error("%s", e)
        print(f"Fatal: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
