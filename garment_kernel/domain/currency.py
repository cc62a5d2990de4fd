"""Currency registry for the sourcing and production currencies in use."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar

from garment_kernel.exceptions import InvalidCurrencyError


@dataclass(frozen=True)
class CurrencyInfo:
    """Decimal precision and display name of one ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def quantum(self) -> Decimal:
        """Smallest representable unit, for ``Decimal.quantize``."""
        return Decimal(1).scaleb(-self.decimal_places)


class CurrencyRegistry:
    """ISO 4217 currencies known to the system."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        info.code: info
        for info in (
            CurrencyInfo("USD", 2, "US Dollar"),
            CurrencyInfo("EUR", 2, "Euro"),
            CurrencyInfo("GBP", 2, "Pound Sterling"),
            CurrencyInfo("CAD", 2, "Canadian Dollar"),
            CurrencyInfo("AUD", 2, "Australian Dollar"),
            CurrencyInfo("CHF", 2, "Swiss Franc"),
            CurrencyInfo("CNY", 2, "Yuan Renminbi"),
            CurrencyInfo("HKD", 2, "Hong Kong Dollar"),
            CurrencyInfo("BDT", 2, "Bangladeshi Taka"),
            CurrencyInfo("INR", 2, "Indian Rupee"),
            CurrencyInfo("PKR", 2, "Pakistan Rupee"),
            CurrencyInfo("LKR", 2, "Sri Lanka Rupee"),
            CurrencyInfo("KHR", 2, "Cambodian Riel"),
            CurrencyInfo("MMK", 2, "Myanmar Kyat"),
            CurrencyInfo("TRY", 2, "Turkish Lira"),
            CurrencyInfo("MAD", 2, "Moroccan Dirham"),
            CurrencyInfo("EGP", 2, "Egyptian Pound"),
            CurrencyInfo("MXN", 2, "Mexican Peso"),
            CurrencyInfo("THB", 2, "Thai Baht"),
            CurrencyInfo("IDR", 2, "Rupiah"),
            CurrencyInfo("JPY", 0, "Japanese Yen"),
            CurrencyInfo("KRW", 0, "South Korean Won"),
            CurrencyInfo("VND", 0, "Vietnamese Dong"),
            CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
            CurrencyInfo("BHD", 3, "Bahraini Dinar"),
        )
    }

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return code in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo:
        """Return the registry entry, raising ``InvalidCurrencyError`` if unknown."""
        try:
            return cls._CURRENCIES[code]
        except KeyError:
            raise InvalidCurrencyError(code) from None

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        return cls.get_info(code).decimal_places

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)
