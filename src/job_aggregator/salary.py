import re

from job_aggregator.models import SalaryRange

DEFAULT_CURRENCY = "USD"

CURRENCY_CODES = {
    "$": "USD",
    "C$": "CAD",
    "A$": "AUD",
    "€": "EUR",
    "£": "GBP",
}
CURRENCY_SYMBOLS = {code: symbol for symbol, code in CURRENCY_CODES.items()}

# Amount: thousands separated by commas or dots ("50,000", "2.400"), optional
# two-digit decimal part, optional "k" suffix.
_CURRENCY = r"(C\$|A\$|[$€£])"
_AMOUNT = r"(\d{1,3}(?:[.,]\d{3})+(?:[.,]\d{1,2})?|\d+(?:[.,]\d{1,2})?)([kK])?\b"
RANGE_PATTERN = re.compile(rf"{_CURRENCY}?\s*{_AMOUNT}\s*[-–—]\s*{_CURRENCY}?\s*{_AMOUNT}")

UNIT_KEYWORDS = (
    ("hour", r"hours?|hourly|hrs?"),
    ("day", r"days?|daily"),
    ("month", r"months?|monthly|mos?"),
    ("year", r"years?|yearly|yrs?|annual(?:ly)?|annum"),
)
# A unit only counts when attached to the range: "$45-60/hr", "... per year",
# "... an hour", or a label such as "Monthly stipend: €2.400 - €3.000".
UNIT_AFTER_PATTERNS = tuple(
    (unit, re.compile(rf"^\s*(?:/\s*|(?:per|an?|each)\s+)?(?:{words})\b", re.IGNORECASE))
    for unit, words in UNIT_KEYWORDS
)
UNIT_BEFORE_PATTERNS = tuple(
    (unit, re.compile(rf"\b(?:{words})\b(?:\s+\w+){{0,2}}\s*:?\s*$", re.IGNORECASE))
    for unit, words in UNIT_KEYWORDS
)
UNIT_CONTEXT_CHARS = 40

ANNUAL_MULTIPLIERS = {
    "hour": 2080,  # 40 hours/week * 52 weeks
    "day": 260,
    "month": 12,
    "year": 1,
}


def has_pay_range(salary_min: float | None, salary_max: float | None) -> bool:
    """True when both bounds are present, positive, and ordered."""
    if salary_min is None or salary_max is None:
        return False
    return salary_min > 0 and salary_max > 0 and salary_max >= salary_min


def _parse_amount(amount: str, suffix: str | None) -> float:
    decimal = re.search(r"[.,](\d{1,2})$", amount)
    if decimal:
        whole = re.sub(r"[.,]", "", amount[: decimal.start()])
        value = float(f"{whole}.{decimal.group(1)}")
    else:
        value = float(re.sub(r"[.,]", "", amount))
    if suffix:
        value *= 1000
    return value


def _detect_unit(text: str, start: int, end: int) -> str:
    """Unit keyword directly after the range, else a label directly before it."""
    after = text[end : end + UNIT_CONTEXT_CHARS]
    for unit, pattern in UNIT_AFTER_PATTERNS:
        if pattern.search(after):
            return unit

    before = text[max(0, start - UNIT_CONTEXT_CHARS) : start]
    for unit, pattern in UNIT_BEFORE_PATTERNS:
        if pattern.search(before):
            return unit
    return "unknown"


def detect_salary(text: str | None) -> SalaryRange | None:
    """
    Recover a pay range such as "$50,000 - $70,000 per year" from free text.

    At least one bound must carry a currency symbol, so "3-5 years" or a
    phone number is never read as pay. Returns None when nothing usable is
    found, which callers must read as "no reliable signal", not as zero pay.
    """
    if not text:
        return None

    for match in RANGE_PATTERN.finditer(text):
        symbol_min, amount_min, k_min, symbol_max, amount_max, k_max = match.groups()
        symbol = symbol_min or symbol_max
        if not symbol:
            continue
        low = _parse_amount(amount_min, k_min)
        high = _parse_amount(amount_max, k_max)
        # "$120-150k": the suffix on the upper bound applies to both
        if k_max and not k_min and low < 1000:
            low *= 1000
        if low <= 0 or high <= 0 or low > high:
            continue

        return SalaryRange(
            min=low,
            max=high,
            currency=CURRENCY_CODES[symbol],
            unit=_detect_unit(text, match.start(), match.end()),
        )

    return None


def convert_to_annual(salary: SalaryRange) -> SalaryRange:
    """Scale a range to its yearly equivalent. Ranges with an unknown unit are returned as-is."""
    multiplier = ANNUAL_MULTIPLIERS.get(salary.unit)
    if multiplier is None:
        return salary
    return SalaryRange(
        min=round(salary.min * multiplier),
        max=round(salary.max * multiplier),
        currency=salary.currency,
        unit="year",
    )


def _format_amount(value: float) -> str:
    return f"{value:,.0f}" if value == int(value) else f"{value:,.2f}"


def format_salary_range(salary: SalaryRange) -> str:
    symbol = CURRENCY_SYMBOLS.get(salary.currency, f"{salary.currency} ")
    suffix = "" if salary.unit == "unknown" else f"/{salary.unit}"
    if salary.min == salary.max:
        return f"{symbol}{_format_amount(salary.min)}{suffix}"
    return f"{symbol}{_format_amount(salary.min)} - {symbol}{_format_amount(salary.max)}{suffix}"
