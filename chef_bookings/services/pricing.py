"""
Quote computation for private-chef packages.

Pure functions only: no database, no network. All money is in integer cents,
and the deposit is rounded half-up so ``deposit + balance == subtotal`` holds
for every quote.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from chef_bookings.config import ACCESS_CODES, DEPOSIT_RATE
from chef_bookings.errors import InvalidPartySize, PackageRuleViolation

MIN_DEPOSIT_CENTS = 50  # processor minimum charge


@dataclass(frozen=True)
class Package:
    id: str
    title: str
    per_person_cents: int
    min_party: int
    fixed_party: Optional[int] = None
    weekdays: Optional[frozenset[int]] = None  # date.weekday() values; None means any day


@dataclass(frozen=True)
class AddOn:
    id: str
    cents: int
    per_guest: bool


PACKAGES: dict[str, Package] = {
    "tasting": Package("tasting", "Tasting Menu", 20000, min_party=2),
    "family": Package("family", "Family-Style Dinner", 20000, min_party=6),
    "cocktail": Package("cocktail", "Cocktail & Canapés", 12500, min_party=10),
    "chefs_table": Package(
        "chefs_table",
        "Chef's Table",
        25000,
        min_party=2,
        fixed_party=2,
        weekdays=frozenset({1, 2, 3}),  # Tue-Thu
    ),
}

ADDONS: dict[str, AddOn] = {
    "wine_pairing": AddOn("wine_pairing", 6500, per_guest=True),
    "bartender": AddOn("bartender", 25000, per_guest=False),
    "tableware": AddOn("tableware", 15000, per_guest=False),
}


@dataclass(frozen=True)
class Quote:
    package_id: str
    package_title: str
    party_size: int
    per_person_cents: int
    addon_cents: int
    subtotal_cents: int
    deposit_rate: float
    deposit_cents: int
    balance_cents: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def is_valid_access_code(code: Optional[str]) -> bool:
    return bool(code) and code.strip().upper() in ACCESS_CODES


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _party_floor(package: Package, access_code: Optional[str]) -> int:
    if is_valid_access_code(access_code):
        return 1
    return package.min_party


def _addon_cents(addons: Iterable[str], party_size: int) -> int:
    total = 0
    for addon_id in sorted(set(addons)):
        addon = ADDONS.get(addon_id)
        if addon is None:
            raise PackageRuleViolation(f"Unknown add-on: {addon_id}")
        total += addon.cents * party_size if addon.per_guest else addon.cents
    return total


def quote(
    package_id: str,
    party_size: int,
    addons: Iterable[str] = (),
    access_code: Optional[str] = None,
    event_date: Optional[date] = None,
    per_person_override: Optional[int] = None,
    deposit_rate_override: Optional[float] = None,
) -> Quote:
    """
    Price a booking request.

    Args:
        package_id: Catalogue key (``tasting``, ``family``, ``cocktail``, ``chefs_table``)
        party_size: Number of guests
        addons: Add-on keys; duplicates are ignored
        access_code: Code that lowers the package's party floor to 1
        event_date: Booking day, checked against weekday-restricted packages
        per_person_override: Per-guest price in cents replacing the catalogue price
        deposit_rate_override: Deposit fraction in ``(0, 1]`` replacing DEPOSIT_RATE

    Returns:
        Quote: Pricing breakdown in cents

    Raises:
        InvalidPartySize: Party below the floor or not the package's fixed size
        PackageRuleViolation: Unknown package or add-on, weekday restriction,
            invalid override, or a deposit below the processor minimum
    """
    package = PACKAGES.get(package_id)
    if package is None:
        raise PackageRuleViolation(f"Unknown package: {package_id}")

    if party_size < 1:
        raise InvalidPartySize("Guest count must be at least 1")
    if package.fixed_party is not None and party_size != package.fixed_party:
        raise InvalidPartySize(f"{package.title} is for exactly {package.fixed_party} guests")

    floor = _party_floor(package, access_code)
    if party_size < floor:
        raise InvalidPartySize(f"{package.title} requires at least {floor} guests")

    if package.weekdays is not None and event_date is not None:
        if event_date.weekday() not in package.weekdays:
            raise PackageRuleViolation(f"{package.title} is only available Tuesday through Thursday")

    per_person = package.per_person_cents
    if per_person_override is not None:
        if per_person_override < 1:
            raise PackageRuleViolation("Per-person price must be positive")
        per_person = per_person_override

    rate = DEPOSIT_RATE if deposit_rate_override is None else deposit_rate_override
    if not 0 < rate <= 1:
        raise PackageRuleViolation("Deposit rate must be within (0, 1]")

    addon_cents = _addon_cents(addons, party_size)
    subtotal = per_person * party_size + addon_cents
    deposit = round_half_up(Decimal(subtotal) * Decimal(str(rate)))
    if deposit < MIN_DEPOSIT_CENTS:
        raise PackageRuleViolation("Calculated deposit is too small")

    return Quote(
        package_id=package.id,
        package_title=package.title,
        party_size=party_size,
        per_person_cents=per_person,
        addon_cents=addon_cents,
        subtotal_cents=subtotal,
        deposit_rate=rate,
        deposit_cents=deposit,
        balance_cents=subtotal - deposit,
    )
