"""
FSM Reports - Currency formatting

Amounts are rounded to whole units (half up) and grouped with the tenant's
thousands convention: western 1,234,567 or indian 12,34,567.
Symbol resolution: tenant.currency_symbol > currency_code > timezone hint > ₹
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from models.tenant import NumberGrouping, Tenant

DEFAULT_SYMBOL = "₹"

CURRENCY_SYMBOLS = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "EGP": "EGP",
    "KWD": "KWD",
    "AED": "AED",
    "SAR": "SAR",
}

# Tenants created before currency settings existed only carry a timezone
TIMEZONE_SYMBOL_HINTS = {
    "Africa/Cairo": "EGP",
    "Asia/Kuwait": "KWD",
    "Asia/Dubai": "AED",
    "Asia/Riyadh": "SAR",
}


def resolve_currency_symbol(tenant: Tenant) -> str:
    if tenant.currency_symbol and tenant.currency_symbol.strip():
        return tenant.currency_symbol.strip()
    code = (tenant.currency_code or "").strip().upper()
    if code:
        return CURRENCY_SYMBOLS.get(code, code)
    return TIMEZONE_SYMBOL_HINTS.get(tenant.timezone or "", DEFAULT_SYMBOL)


def round_amount(amount) -> int:
    try:
        value = Decimal(str(amount if amount is not None else 0))
    except InvalidOperation:
        return 0
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def group_digits(digits: str, grouping: NumberGrouping = NumberGrouping.WESTERN) -> str:
    if len(digits) <= 3:
        return digits
    if grouping == NumberGrouping.INDIAN:
        head, tail = digits[:-3], digits[-3:]
        pairs = []
        while len(head) > 2:
            pairs.insert(0, head[-2:])
            head = head[:-2]
        if head:
            pairs.insert(0, head)
        return ",".join(pairs + [tail])
    return f"{int(digits):,}"


def format_amount(amount, symbol: str = DEFAULT_SYMBOL,
                  grouping: NumberGrouping = NumberGrouping.WESTERN) -> str:
    """format_amount(230000) -> '₹230,000', format_amount(5, 'EGP') -> 'EGP 5'"""
    value = round_amount(amount)
    sign = "-" if value < 0 else ""
    grouped = group_digits(str(abs(value)), grouping)
    separator = " " if symbol[-1:].isalpha() else ""
    return f"{sign}{symbol}{separator}{grouped}"


class CurrencyFormatter:
    """Callable bound to one tenant's currency conventions"""

    def __init__(self, symbol: str = DEFAULT_SYMBOL,
                 grouping: NumberGrouping = NumberGrouping.WESTERN):
        self.symbol = symbol
        self.grouping = grouping

    @classmethod
    def for_tenant(cls, tenant: Tenant) -> "CurrencyFormatter":
        return cls(resolve_currency_symbol(tenant), tenant.number_grouping)

    def __call__(self, amount) -> str:
        return format_amount(amount, self.symbol, self.grouping)
