from __future__ import annotations

from collections import defaultdict
from math import isfinite
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from src.analytics.contract_terms import contract_years, duration_months
from src.models.crm import AccountRecord, EstimateRecord

WON_STATUS = "won"


class YearContribution(NamedTuple):
    applies_to_year: bool
    amount: float


def normalize_label(value: Optional[str]) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def is_won(estimate: EstimateRecord) -> bool:
    return normalize_label(estimate.status) == WON_STATUS


def is_eligible(estimate: EstimateRecord) -> bool:
    return is_won(estimate) and not estimate.exclude_stats and not estimate.archived


def _usable_amount(value: Optional[float]) -> Optional[float]:
    if value is None or not isfinite(value) or value == 0:
        return None
    return value


def resolve_price(estimate: EstimateRecord) -> Optional[float]:
    with_tax = _usable_amount(estimate.total_price_with_tax)
    if with_tax is not None:
        return with_tax
    return _usable_amount(estimate.total_price)


def is_countable(estimate: EstimateRecord) -> bool:
    price = resolve_price(estimate)
    return is_eligible(estimate) and price is not None and price > 0


def resolve_year_contribution(
    estimate: EstimateRecord, target_year: int
) -> Optional[YearContribution]:
    """Revenue an estimate contributes to ``target_year``.

    Fallback chain: full contract span (amortized evenly over its contract
    years), contract start only, estimate date, and finally no date at all,
    which applies to whatever year is asked for. Returns None when the
    estimate has no usable price or its contract span is inverted.
    """
    price = resolve_price(estimate)
    if price is None:
        return None

    start = estimate.contract_start
    end = estimate.contract_end
    if start is not None and end is not None:
        months = duration_months(start, end)
        if months <= 0:
            return None
        years = contract_years(months)
        applies = start.year <= target_year <= start.year + years - 1
        return YearContribution(applies, price / years if applies else 0.0)

    anchor = start or estimate.estimate_date
    if anchor is not None:
        applies = anchor.year == target_year
        return YearContribution(applies, price if applies else 0.0)

    return YearContribution(True, price)


def attributed_years(estimate: EstimateRecord) -> Optional[FrozenSet[int]]:
    """Calendar years an estimate is attributed to.

    None means "any requested year" (no usable date); an empty set means the
    estimate never contributes.
    """
    if resolve_price(estimate) is None:
        return frozenset()
    start = estimate.contract_start
    end = estimate.contract_end
    if start is not None and end is not None:
        months = duration_months(start, end)
        if months <= 0:
            return frozenset()
        return frozenset(range(start.year, start.year + contract_years(months)))
    anchor = start or estimate.estimate_date
    if anchor is not None:
        return frozenset({anchor.year})
    return None


def iter_year_contributions(
    account: AccountRecord, estimates: Iterable[EstimateRecord], target_year: int
) -> Iterator[Tuple[EstimateRecord, YearContribution]]:
    for estimate in estimates:
        if estimate.account_id != account.id or not is_countable(estimate):
            continue
        contribution = resolve_year_contribution(estimate, target_year)
        if contribution is None or not contribution.applies_to_year:
            continue
        yield estimate, contribution


def account_revenue(
    account: AccountRecord, estimates: Iterable[EstimateRecord], target_year: int
) -> float:
    total = 0.0
    for _, contribution in iter_year_contributions(account, estimates, target_year):
        if isfinite(contribution.amount):
            total += contribution.amount
    return total


def manual_revenue_override(account: AccountRecord) -> float:
    value = account.annual_revenue
    if value is None or not isfinite(value) or value <= 0:
        return 0.0
    return value


def effective_revenue(
    account: AccountRecord, estimates: Iterable[EstimateRecord], target_year: int
) -> float:
    # Attributed revenue wins; the manual figure only fills in when there is none.
    revenue = account_revenue(account, estimates, target_year)
    if revenue <= 0:
        return manual_revenue_override(account)
    return revenue


def revenue_by_year(
    account: AccountRecord, estimates: Iterable[EstimateRecord]
) -> Dict[int, float]:
    totals: Dict[int, float] = defaultdict(float)
    for estimate in estimates:
        if estimate.account_id != account.id or not is_countable(estimate):
            continue
        years = attributed_years(estimate)
        if not years:
            continue
        for year in years:
            contribution = resolve_year_contribution(estimate, year)
            if contribution is not None and isfinite(contribution.amount):
                totals[year] += contribution.amount
    return dict(sorted(totals.items()))


def group_estimates_by_account(
    estimates: Iterable[EstimateRecord],
) -> Dict[str, List[EstimateRecord]]:
    grouped: Dict[str, List[EstimateRecord]] = defaultdict(list)
    for estimate in estimates:
        if estimate.account_id:
            grouped[estimate.account_id].append(estimate)
    return dict(grouped)


def total_revenue(
    accounts: Sequence[AccountRecord],
    estimates_by_account_id: Mapping[str, Sequence[EstimateRecord]],
    target_year: int,
) -> float:
    return sum(
        effective_revenue(account, estimates_by_account_id.get(account.id, ()), target_year)
        for account in accounts
    )
