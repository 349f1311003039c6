"""Marketplace configuration — JSON parameters with environment overrides.

Static parameters live in config/market_params.json. Deployment-specific
values (administrator, fee recipient, data directory) can be overridden
by environment variables, read from the process environment or from a
.env file at the project root. The process environment always wins over
the .env file.

Overrides:
    PROMPTHASH_ADMIN          administrator identity
    PROMPTHASH_FEE_RECIPIENT  protocol fee recipient
    PROMPTHASH_FEE_BPS        initial fee in basis points
    PROMPTHASH_OPERATOR       marketplace operator identity
    PROMPTHASH_DATA_DIR       directory for state.json and events.jsonl
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import dotenv_values

from prompthash.models.settlement import BASIS_POINTS, DEFAULT_FEE_BPS

ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_DIR = ROOT / "config"
PARAMS_FILENAME = "market_params.json"


@dataclass(frozen=True)
class MarketConfig:
    """Bootstrap parameters for one marketplace deployment."""
    admin_id: str
    fee_recipient: str
    fee_bps: int = DEFAULT_FEE_BPS
    operator_id: str = "prompthash-market"
    token_name: str = "PromptHash"
    token_symbol: str = "PHASH"
    token_base_uri: str = "https://api.example.com/v1/"
    asset_name: str = "My Token"
    asset_symbol: str = "TKN"
    asset_decimals: int = 18
    data_dir: Optional[Path] = None

    @classmethod
    def from_config_dir(
        cls,
        config_dir: Path = DEFAULT_CONFIG_DIR,
        env_file: Optional[Path] = None,
    ) -> MarketConfig:
        """Load market_params.json, then apply .env and environment overrides."""
        params_path = config_dir / PARAMS_FILENAME
        params = json.loads(params_path.read_text(encoding="utf-8"))

        if env_file is None:
            env_file = config_dir.parent / ".env"
        env: dict[str, Any] = {}
        if env_file.exists():
            env.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
        env.update(os.environ)
        return cls.from_params(params, env)

    @classmethod
    def from_params(
        cls,
        params: Mapping[str, Any],
        env: Optional[Mapping[str, str]] = None,
    ) -> MarketConfig:
        env = env or {}
        market = params.get("marketplace", {})
        token = params.get("identity_token", {})
        asset = params.get("payment_asset", {})

        data_dir = env.get("PROMPTHASH_DATA_DIR") or market.get("data_dir")
        return cls(
            admin_id=env.get("PROMPTHASH_ADMIN", market.get("admin_id", "")),
            fee_recipient=env.get(
                "PROMPTHASH_FEE_RECIPIENT", market.get("fee_recipient", ""),
            ),
            fee_bps=_as_int(env.get("PROMPTHASH_FEE_BPS", market.get("fee_bps", DEFAULT_FEE_BPS))),
            operator_id=env.get(
                "PROMPTHASH_OPERATOR", market.get("operator_id", "prompthash-market"),
            ),
            token_name=token.get("name", "PromptHash"),
            token_symbol=token.get("symbol", "PHASH"),
            token_base_uri=token.get("base_uri", "https://api.example.com/v1/"),
            asset_name=asset.get("name", "My Token"),
            asset_symbol=asset.get("symbol", "TKN"),
            asset_decimals=_as_int(asset.get("decimals", 18)),
            data_dir=Path(data_dir) if data_dir else None,
        )

    def validate(self) -> list[str]:
        """Check bootstrap parameters. Returns problems (empty = OK)."""
        errors: list[str] = []
        if not self.admin_id.strip():
            errors.append("admin_id must be non-empty")
        if not self.fee_recipient.strip():
            errors.append("fee_recipient must be non-empty")
        if not self.operator_id.strip():
            errors.append("operator_id must be non-empty")
        if not _is_int(self.fee_bps):
            errors.append(f"fee_bps must be an integer, got {self.fee_bps!r}")
        elif not 0 <= self.fee_bps <= BASIS_POINTS:
            errors.append(f"fee_bps must be in [0, {BASIS_POINTS}], got {self.fee_bps}")
        if self.operator_id in (self.admin_id, self.fee_recipient):
            errors.append("operator_id must differ from admin_id and fee_recipient")
        if not _is_int(self.asset_decimals) or self.asset_decimals < 0:
            errors.append(f"asset decimals must be an integer >= 0, got {self.asset_decimals!r}")
        return errors


def _as_int(value: Any) -> Any:
    """Parse numeric overrides; unparsable values are left for validate()."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return value


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
