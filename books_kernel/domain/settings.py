"""
Kernel-side settings objects.

The kernel never reads configuration files; ``books_config.bridges``
translates the loaded YAML into these frozen values.
"""

from dataclasses import dataclass, field

from books_kernel.domain.values import MONEY_DECIMAL_PLACES, DocumentKind, round_money, to_decimal


@dataclass(frozen=True)
class NumberingPolicy:
    """How document numbers are allocated when the caller omits one."""

    sale_prefix: str = "INV-"
    purchase_prefix: str = "PUR-"
    padding: int = 5

    def prefix_for(self, kind: DocumentKind) -> str:
        return self.sale_prefix if DocumentKind(kind) is DocumentKind.SALE else self.purchase_prefix

    def format(self, kind: DocumentKind, value: int) -> str:
        return f"{self.prefix_for(kind)}{value:0{self.padding}d}"


@dataclass(frozen=True)
class KernelSettings:
    numbering: NumberingPolicy = field(default_factory=NumberingPolicy)
    decimal_places: int = MONEY_DECIMAL_PLACES
    # Attempts after the first one when a unit hits a concurrency conflict
    max_conflict_retries: int = 3
    # Relaxes the stock guard for manual adjustments only
    allow_negative_adjustments: bool = False


@dataclass(frozen=True)
class StatementStyle:
    """Company identity and currency formatting for printed statements."""

    company_name: str = ""
    company_details: tuple[str, ...] = ()
    currency_symbol: str = "$"
    symbol_position: str = "before"
    decimal_places: int = MONEY_DECIMAL_PLACES

    def format_money(self, amount) -> str:
        value = round_money(to_decimal(amount), self.decimal_places)
        sign = "-" if value < 0 else ""
        digits = f"{abs(value):,.{self.decimal_places}f}"
        if self.symbol_position == "after":
            return f"{sign}{digits} {self.currency_symbol}"
        return f"{sign}{self.currency_symbol}{digits}"
