from typing import Iterable

from ..models import AssetClass, AssetType, Instrument, PortfolioSnapshot
from ..utils import parse_enum, safe_divide
from .ledger import dedupe_instruments

ASSET_CLASS_LABELS = {
    AssetClass.STOCK: "Stocks",
    AssetClass.BOND: "Bonds",
    AssetClass.ETF_STOCK: "Equity ETFs",
    AssetClass.ETF_BOND: "Bond ETFs",
    AssetClass.ETC: "ETC",
    AssetClass.CRYPTO: "Crypto",
    AssetClass.CASH: "Cash",
    AssetClass.OTHER: "Other",
}

REGION_LABELS = {
    "CH": "Switzerland",
    "NA": "North America",
    "EU": "Europe",
    "AS": "Asia",
    "OC": "Oceania",
    "LATAM": "Latin America",
    "AF": "Africa",
    "UNASSIGNED": "Unassigned",
}

_ISIN_REGIONS = {
    "CH": "CH",
    "US": "NA",
    "GB": "EU",
    **{p: "EU" for p in ("IE", "LU", "FR", "DE", "NL", "ES", "IT", "BE", "DK", "SE", "FI", "NO", "PT", "AT")},
    **{p: "AS" for p in ("JP", "CN", "HK", "KR", "SG", "IN", "TW")},
    **{p: "OC" for p in ("AU", "NZ")},
    **{p: "LATAM" for p in ("BR", "MX", "CL", "AR")},
    **{p: "AF" for p in ("ZA", "EG", "NG")},
}

_ETC_WORDS = ("etc", "etn", "physical gold", "gold", "commodity")
_ETF_BOND_WORDS = ("bond", "treasury", "aggregate", "gov", "government", "corporate", "credit", "duration", "tips", "inflation")


def _contains_any(text: str, words) -> bool:
    text = text.lower()
    return any(w in text for w in words)


def infer_asset_class(instrument: Instrument) -> AssetClass:
    explicit = parse_enum(AssetClass, instrument.asset_class)
    if explicit:
        return explicit
    name = (instrument.name or "").lower()
    ticker = (instrument.ticker or "").upper()
    kind = parse_enum(AssetType, instrument.asset_type)

    if "BTC" in ticker or "ETH" in ticker or kind == AssetType.CRYPTO:
        return AssetClass.CRYPTO
    if _contains_any(name, _ETC_WORDS):
        return AssetClass.ETC
    if "etf" in name or "ucits" in name or kind == AssetType.ETF:
        # equity is the default for funds without bond cues
        return AssetClass.ETF_BOND if _contains_any(name, _ETF_BOND_WORDS) else AssetClass.ETF_STOCK
    if kind == AssetType.BOND:
        return AssetClass.BOND
    if kind == AssetType.STOCK:
        return AssetClass.STOCK
    if kind == AssetType.CASH:
        return AssetClass.CASH
    return AssetClass.OTHER


def allocation_by_asset_class(
    snapshot: PortfolioSnapshot,
    instruments: Iterable[Instrument],
    min_pct: float = 2.0,
) -> list[dict]:
    """Value per asset class, largest first; slices under ``min_pct`` fold into OTHER."""
    by_ticker = dedupe_instruments(instruments)
    values: dict[AssetClass, float] = {}
    for pos in snapshot.positions:
        inst = by_ticker.get(pos.ticker)
        key = infer_asset_class(inst) if inst else AssetClass.OTHER
        values[key] = values.get(key, 0.0) + pos.current_value

    total = snapshot.total_value or 0.0
    rows = sorted(
        (
            {"key": k, "label": ASSET_CLASS_LABELS[k], "value": v, "pct": safe_divide(v, total) * 100}
            for k, v in values.items()
            if v > 0
        ),
        key=lambda r: r["value"],
        reverse=True,
    )
    major = [r for r in rows if r["pct"] >= min_pct]
    minor_value = sum(r["value"] for r in rows if r["pct"] < min_pct)
    if minor_value > 0:
        major.append(
            {
                "key": AssetClass.OTHER,
                "label": ASSET_CLASS_LABELS[AssetClass.OTHER],
                "value": minor_value,
                "pct": safe_divide(minor_value, total) * 100,
            }
        )
    return major


def region_from_isin(isin: str | None) -> str | None:
    if not isin or len(isin) < 2:
        return None
    return _ISIN_REGIONS.get(isin[:2].upper())


def region_exposure(snapshot: PortfolioSnapshot, instruments: Iterable[Instrument]) -> list[dict]:
    by_ticker = dedupe_instruments(instruments)
    totals: dict[str, float] = {}
    unassigned = 0.0
    for pos in snapshot.positions:
        inst = by_ticker.get(pos.ticker)
        value = pos.current_value
        if inst is None or value <= 0:
            continue
        split = {k: float(v) for k, v in (inst.region_allocation or {}).items() if k and v is not None}
        if sum(split.values()) > 0:
            for region, pct in split.items():
                totals[region] = totals.get(region, 0.0) + value * pct / 100
            continue
        region = region_from_isin(inst.isin)
        if region:
            totals[region] = totals.get(region, 0.0) + value
        else:
            unassigned += value
    if unassigned > 0:
        totals["UNASSIGNED"] = totals.get("UNASSIGNED", 0.0) + unassigned

    rows = [
        {
            "region": region,
            "label": REGION_LABELS.get(region, region),
            "value": value,
            "pct": safe_divide(value, snapshot.total_value) * 100,
        }
        for region, value in totals.items()
    ]
    return sorted(rows, key=lambda r: r["value"], reverse=True)
