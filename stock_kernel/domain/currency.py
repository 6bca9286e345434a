"""Currency -- precision registry and display rounding."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Display precision for a single currency code."""

    code: str
    decimal_places: int
    name: str

    @property
    def quantize_string(self) -> str:
        """String for Decimal.quantize() to round to this currency's precision."""
        return _quantize_string(self.decimal_places)


def _quantize_string(decimal_places: int) -> str:
    if decimal_places == 0:
        return "1"
    return "0." + "0" * decimal_places


class CurrencyRegistry:
    """
    Known currency precisions.

    Currency identifiers in the adjustment workflow are opaque (they may be
    ISO 4217 codes or application ids).  The registry only answers "how many
    decimals does this currency display with"; anything it does not know
    falls back to ``DEFAULT_DECIMAL_PLACES``.
    """

    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    # ISO 4217 currencies whose minor unit differs from the 2-place default,
    # plus the common 2-place majors for name lookup.
    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling"),
        "KES": CurrencyInfo("KES", 2, "Kenyan Shilling"),
        "TZS": CurrencyInfo("TZS", 2, "Tanzanian Shilling"),
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
        "KRW": CurrencyInfo("KRW", 0, "South Korean Won"),
        "UGX": CurrencyInfo("UGX", 0, "Ugandan Shilling"),
        "RWF": CurrencyInfo("RWF", 0, "Rwandan Franc"),
        "VND": CurrencyInfo("VND", 0, "Vietnamese Dong"),
        "XAF": CurrencyInfo("XAF", 0, "Central African CFA Franc"),
        "XOF": CurrencyInfo("XOF", 0, "West African CFA Franc"),
        "BHD": CurrencyInfo("BHD", 3, "Bahraini Dinar"),
        "JOD": CurrencyInfo("JOD", 3, "Jordanian Dinar"),
        "KWD": CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
        "OMR": CurrencyInfo("OMR", 3, "Omani Rial"),
        "TND": CurrencyInfo("TND", 3, "Tunisian Dinar"),
        "CLF": CurrencyInfo("CLF", 4, "Chilean Unidad de Fomento"),
    }

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        if not code or not isinstance(code, str):
            return None
        return cls._CURRENCIES.get(code.upper().strip())

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        info = cls.get_info(code)
        return info.decimal_places if info else cls.DEFAULT_DECIMAL_PLACES


def round_for_display(
    amount: Decimal,
    currency_id: str,
    min_places: int = 2,
    rounding: str = ROUND_HALF_UP,
) -> Decimal:
    """
    Round an amount for display or export.

    Uses ``max(min_places, currency precision)`` decimal places.  Only call
    this at the presentation boundary; aggregation always runs on the
    unrounded values.
    """
    places = max(min_places, CurrencyRegistry.get_decimal_places(currency_id))
    return amount.quantize(Decimal(_quantize_string(places)), rounding=rounding)
