from typing import List, Tuple

from ..models import PerformancePoint, PortfolioSnapshot

TOTAL_TOLERANCE = 1e-6
WEIGHT_TOLERANCE = 1e-6


def validate_snapshot(snap: PortfolioSnapshot, tolerance: float = TOTAL_TOLERANCE) -> Tuple[bool, List[str]]:
    reasons = []
    positions = snap.positions
    if not isinstance(positions, list):
        return False, ["positions is not a list"]
    position_total = sum(p.current_value for p in positions)
    if abs(position_total - snap.total_value) > tolerance * max(1.0, abs(snap.total_value)):
        reasons.append(f"total_value {snap.total_value:.6f} != sum of positions {position_total:.6f}")
    if snap.total_value > 0:
        weights = sum(p.current_pct for p in positions)
        if abs(weights - 100.0) > WEIGHT_TOLERANCE * 100:
            reasons.append(f"weights sum to {weights:.6f}, expected 100")
    for p in positions:
        if p.quantity <= 0:
            reasons.append(f"{p.ticker}: non-positive quantity")
        if p.current_value < 0:
            reasons.append(f"{p.ticker}: negative value")
    if abs(snap.balance - (snap.total_value - snap.invested_capital)) > tolerance * max(1.0, abs(snap.total_value)):
        reasons.append("balance mismatch")
    return (len(reasons) == 0), reasons


def validate_series(points: List[PerformancePoint]) -> Tuple[bool, List[str]]:
    reasons = []
    if not points:
        return True, reasons
    if points[0].twrr_index != 1.0:
        reasons.append(f"first twrr_index is {points[0].twrr_index}, expected 1.0")
    for prev, cur in zip(points, points[1:]):
        if cur.date <= prev.date:
            reasons.append(f"dates not ascending at {cur.date.isoformat()}")
    for p in points:
        if p.twrr_index < 0:
            reasons.append(f"negative twrr_index at {p.date.isoformat()}")
    return (len(reasons) == 0), reasons
