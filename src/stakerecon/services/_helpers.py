"""Shared utilities for the service layer."""

import json
from collections.abc import Mapping
from decimal import Context, Decimal

JsonDict = dict[str, object]
Serializable = Mapping[str, object] | list[Mapping[str, object]]

# Smallest on-chain unit per whole token; display only.
DISPLAY_DECIMALS: int = 18


def load_json(raw: str | None) -> object | None:
    if not raw:
        return None
    return json.loads(raw)


def dump_json(obj: Serializable, indent: int | None = None) -> str:
    return json.dumps(obj, default=str, indent=indent)


def normalize_address(address: str) -> str:
    """Lower-case 0x-prefixed address; participants are keyed by this form."""
    addr = address.strip().lower()
    if not addr.startswith("0x"):
        addr = "0x" + addr
    return addr


def format_amount(amount: int | str, decimals: int = DISPLAY_DECIMALS) -> str:
    """Render an integer amount in whole tokens. Never feed the result back into math."""
    ctx = Context(prec=100)
    value = Decimal(int(amount)).scaleb(-decimals, context=ctx)
    return format(value.normalize(context=ctx), "f")
