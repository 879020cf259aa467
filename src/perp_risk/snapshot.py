"""Snapshot construction and serialization for `perp_risk`.

Snapshots travel as plain dicts (and YAML documents of the same shape):

    markets:     [{market_index, oracle, margin_ratio_initial, ...}, ...]
    banks:       [{bank_index, oracle, decimals, ...}, ...]
    price_feeds: {oracle: {price, confidence, slot, twap}, ...}
    positions:   [{market_index, base_asset_amount, ...}, ...]
    balances:    [{bank_index, scaled_balance, balance_type}, ...]

Omitted record fields take the dataclass defaults. Integers must be real ints
(bools are rejected) and enums are given by value (``balance_type: borrow``).

Round-trip property (tested): `snapshot_from_dict(snapshot_to_dict(s)) == s`.
"""

from __future__ import annotations

from dataclasses import fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import SnapshotFormatError
from .types import AccountSnapshot, Balance, BalanceType, Bank, Market, Position, PriceFeed

# Field kinds per record type, read from the dataclass annotations.
_FIELD_KINDS: dict[type, dict[str, str]] = {
    cls: {f.name: str(f.type) for f in fields(cls)}
    for cls in (Position, Balance, Market, Bank, PriceFeed)
}


def _coerce(cls: type, name: str, kind: str, val: Any) -> Any:
    where = f"{cls.__name__}.{name}"
    if kind == "bool":
        if not isinstance(val, bool):
            raise SnapshotFormatError(f"{where} must be bool, got {type(val).__name__}")
        return val
    if kind in ("int", "int | None"):
        if val is None and kind == "int | None":
            return None
        if isinstance(val, bool) or not isinstance(val, int):
            raise SnapshotFormatError(f"{where} must be int, got {type(val).__name__}")
        return int(val)  # normalize int subclasses (e.g. numpy)
    if kind == "str":
        if not isinstance(val, str):
            raise SnapshotFormatError(f"{where} must be str, got {type(val).__name__}")
        return val
    if kind == "BalanceType":
        try:
            return BalanceType(val)
        except ValueError:
            raise SnapshotFormatError(f"{where} must be one of deposit|borrow, got {val!r}") from None
    raise SnapshotFormatError(f"{where} has unsupported field type {kind}")


def _record_from_dict(cls: type, d: Any) -> Any:
    if not isinstance(d, Mapping):
        raise SnapshotFormatError(f"{cls.__name__} record must be a mapping, got {type(d).__name__}")
    kinds = _FIELD_KINDS[cls]
    unknown = set(d) - set(kinds)
    if unknown:
        raise SnapshotFormatError(f"unknown {cls.__name__} fields: {sorted(unknown)}")
    kwargs = {name: _coerce(cls, name, kinds[name], val) for name, val in d.items()}
    try:
        return cls(**kwargs)
    except TypeError as exc:
        raise SnapshotFormatError(f"{cls.__name__}: {exc}") from exc


def _record_to_dict(record: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for f in fields(record):
        val = getattr(record, f.name)
        out[f.name] = val.value if isinstance(val, BalanceType) else val
    return out


def _sequence(d: Mapping[str, Any], key: str) -> list[Any]:
    val = d.get(key) or []
    if not isinstance(val, list):
        raise SnapshotFormatError(f"{key} must be a list, got {type(val).__name__}")
    return val


def snapshot_from_dict(d: Mapping[str, Any]) -> AccountSnapshot:
    """Deserialize a dict to an AccountSnapshot. Raises SnapshotFormatError on bad input."""
    if not isinstance(d, Mapping):
        raise SnapshotFormatError("snapshot must be a mapping")

    markets = [_record_from_dict(Market, m) for m in _sequence(d, "markets")]
    banks = [_record_from_dict(Bank, b) for b in _sequence(d, "banks")]

    feeds_raw = d.get("price_feeds") or {}
    if not isinstance(feeds_raw, Mapping):
        raise SnapshotFormatError("price_feeds must be a mapping of oracle -> feed")

    return AccountSnapshot(
        positions=tuple(_record_from_dict(Position, p) for p in _sequence(d, "positions")),
        balances=tuple(_record_from_dict(Balance, b) for b in _sequence(d, "balances")),
        markets={m.market_index: m for m in markets},
        banks={b.bank_index: b for b in banks},
        price_feeds={str(k): _record_from_dict(PriceFeed, v) for k, v in feeds_raw.items()},
    )


def snapshot_to_dict(snapshot: AccountSnapshot) -> dict[str, Any]:
    """Serialize an AccountSnapshot to the plain dict format above."""
    return {
        "markets": [_record_to_dict(m) for m in snapshot.markets.values()],
        "banks": [_record_to_dict(b) for b in snapshot.banks.values()],
        "price_feeds": {k: _record_to_dict(v) for k, v in snapshot.price_feeds.items()},
        "positions": [_record_to_dict(p) for p in snapshot.positions],
        "balances": [_record_to_dict(b) for b in snapshot.balances],
    }


def load_snapshot(path: str | Path) -> AccountSnapshot:
    """Read a YAML snapshot document from *path*."""
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if not isinstance(obj, Mapping):
        raise SnapshotFormatError("snapshot YAML must be a mapping")
    return snapshot_from_dict(obj)


def dump_snapshot(snapshot: AccountSnapshot) -> str:
    return yaml.safe_dump(snapshot_to_dict(snapshot), sort_keys=False)
