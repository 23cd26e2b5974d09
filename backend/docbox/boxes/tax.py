"""Thai VAT and withholding-tax arithmetic.

All amounts are baht and every derived amount is rounded to satang.
"""

from dataclasses import dataclass

DEFAULT_VAT_RATE = 7.0
DEFAULT_WHT_RATE = 3.0

# Rates from the Revenue Department's withholding schedule
WHT_RATES: dict[float, str] = {
    1.0: "ค่าโฆษณา",
    2.0: "ค่าขนส่ง",
    3.0: "ค่าบริการ/จ้างทำของ",
    5.0: "ค่าเช่า",
}

WHT_RATE_DESCRIPTIONS_EN: dict[float, str] = {
    1.0: "Advertising",
    2.0: "Transportation",
    3.0: "Services / contract work",
    5.0: "Rental",
}


@dataclass(frozen=True)
class TaxBreakdown:
    total: float
    vat: float
    base: float
    wht: float
    net_payable: float


def round_satang(amount: float) -> float:
    return round(amount, 2)


def compute_vat(total: float, rate: float = DEFAULT_VAT_RATE) -> float:
    """VAT contained in a VAT-inclusive total."""
    if total <= 0 or rate <= 0:
        return 0.0
    return round_satang(total * rate / (100 + rate))


def compute_vat_exclusive(base: float, rate: float = DEFAULT_VAT_RATE) -> float:
    """VAT charged on top of a pre-VAT base."""
    if base <= 0 or rate <= 0:
        return 0.0
    return round_satang(base * rate / 100)


def compute_wht(total: float, vat: float, rate: float = DEFAULT_WHT_RATE) -> float:
    """WHT is withheld from the pre-VAT amount."""
    base = total - vat
    if base <= 0 or rate <= 0:
        return 0.0
    return round_satang(base * rate / 100)


def derive_amounts(
    amount: float,
    has_vat: bool = True,
    is_vat_inclusive: bool = True,
    vat_rate: float = DEFAULT_VAT_RATE,
    has_wht: bool = False,
    wht_rate: float | None = None,
) -> TaxBreakdown:
    if not has_vat:
        total = round_satang(amount)
        vat = 0.0
    elif is_vat_inclusive:
        total = round_satang(amount)
        vat = compute_vat(total, vat_rate)
    else:
        vat = compute_vat_exclusive(amount, vat_rate)
        total = round_satang(amount + vat)

    base = round_satang(total - vat)
    if has_wht:
        wht = compute_wht(total, vat, DEFAULT_WHT_RATE if wht_rate is None else wht_rate)
    else:
        wht = 0.0

    return TaxBreakdown(
        total=total,
        vat=vat,
        base=base,
        wht=wht,
        net_payable=round_satang(total - wht),
    )


def wht_rate_options() -> list[dict]:
    return [
        {"rate": rate, "description": WHT_RATES[rate], "description_en": WHT_RATE_DESCRIPTIONS_EN[rate]}
        for rate in sorted(WHT_RATES)
    ]
