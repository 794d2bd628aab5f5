"""
Monte Carlo portfolio simulator.

Random-walk projection of portfolio value under one of the risk profiles in
config.finance_tables. Normal shocks come from the Box-Muller transform on a
seedable random.Random so results are reproducible.
"""

import logging
import math
import random
from typing import Dict, Any, List, Optional

from config.finance_tables import MONTE_CARLO_PROFILES, get_monte_carlo_profile

logger = logging.getLogger(__name__)

DEFAULT_SIMULATIONS = 1000
MAX_SIMULATIONS = 10000
MAX_MONTHS = 600
VALUE_FLOOR_FRACTION = 0.1


def gaussian(rng: random.Random) -> float:
    """Standard normal draw (Box-Muller, zero uniforms rejected)."""
    u = 0.0
    v = 0.0
    while u == 0.0:
        u = rng.random()
    while v == 0.0:
        v = rng.random()
    return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)


def _percentile(sorted_values: List[float], p: float) -> float:
    index = int(math.floor(p / 100.0 * len(sorted_values)))
    return sorted_values[min(index, len(sorted_values) - 1)]


def run_simulation(
    initial: float,
    months: int,
    profile: str = "moderate",
    simulations: int = DEFAULT_SIMULATIONS,
    seed: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """
    Simulate portfolio paths for one risk profile.

    Args:
        initial: Starting capital
        months: Horizon in months
        profile: conservative, moderate or aggressive
        simulations: Number of paths
        seed: Seed for a fresh generator (ignored when rng is given)
        rng: Generator shared across calls

    Returns:
        Dict with per-month median/p10/p90 series and final-value statistics
    """
    if initial <= 0:
        raise ValueError("Initial capital must be positive")
    if months < 1 or months > MAX_MONTHS:
        raise ValueError(f"Months must be between 1 and {MAX_MONTHS}")
    if simulations < 1 or simulations > MAX_SIMULATIONS:
        raise ValueError(f"Simulations must be between 1 and {MAX_SIMULATIONS}")

    params = get_monte_carlo_profile(profile)
    mu = params["monthly_return"]
    sigma = params["monthly_volatility"]
    floor_value = initial * VALUE_FLOOR_FRACTION
    rng = rng or random.Random(seed)

    paths: List[List[float]] = []
    for _ in range(simulations):
        value = initial
        path = [value]
        for _month in range(months):
            value = value * (1 + mu + gaussian(rng) * sigma)
            value = max(value, floor_value)
            path.append(value)
        paths.append(path)

    series = []
    for month in range(months + 1):
        column = sorted(path[month] for path in paths)
        series.append({
            "month": month,
            "label": "Start" if month == 0 else f"M{month}",
            "median": round(_percentile(column, 50), 2),
            "p10": round(_percentile(column, 10), 2),
            "p90": round(_percentile(column, 90), 2),
        })

    finals = [path[-1] for path in paths]
    sorted_finals = sorted(finals)
    count = len(finals)

    logger.debug("Monte Carlo profile=%s months=%d simulations=%d", profile, months, simulations)

    return {
        "profile": str(profile).strip().lower(),
        "label": params["label"],
        "initial": initial,
        "months": months,
        "simulations": simulations,
        "series": series,
        "stats": {
            "median_final": round(sorted_finals[count // 2], 2),
            "p5_final": round(sorted_finals[int(math.floor(count * 0.05))], 2),
            "p95_final": round(sorted_finals[min(int(math.floor(count * 0.95)), count - 1)], 2),
            "prob_profit": round(sum(1 for v in finals if v > initial) / count * 100, 1),
            "prob_double": round(sum(1 for v in finals if v > initial * 2) / count * 100, 1),
        },
    }


def compare_portfolios(portfolios: List[Dict[str, Any]], simulations: int = DEFAULT_SIMULATIONS,
                       seed: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Simulate several named portfolios from one shared generator.

    Each portfolio dict carries ``name``, ``initial``, ``months`` and ``profile``.
    """
    if not portfolios:
        raise ValueError("At least one portfolio is required")
    rng = random.Random(seed)
    results = []
    for index, portfolio in enumerate(portfolios):
        result = run_simulation(
            initial=portfolio["initial"],
            months=portfolio["months"],
            profile=portfolio.get("profile", "moderate"),
            simulations=simulations,
            rng=rng,
        )
        result["name"] = portfolio.get("name") or f"Portfolio {chr(65 + index)}"
        results.append(result)
    return results


def compare_profiles(initial: float, months: int, simulations: int = DEFAULT_SIMULATIONS,
                     seed: Optional[int] = None) -> List[Dict[str, Any]]:
    """Run every risk profile with the same capital and horizon."""
    return compare_portfolios(
        [
            {"name": params["label"], "initial": initial, "months": months, "profile": name}
            for name, params in MONTE_CARLO_PROFILES.items()
        ],
        simulations=simulations,
        seed=seed,
    )
