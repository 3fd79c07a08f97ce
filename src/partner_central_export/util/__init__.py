from .dates import DateEncoding, DateValue, months_between, normalize_date
from .money import find_first_money, money_after
from .retry import retry_fixed

__all__ = [
    "DateEncoding",
    "DateValue",
    "months_between",
    "normalize_date",
    "find_first_money",
    "money_after",
    "retry_fixed",
]
