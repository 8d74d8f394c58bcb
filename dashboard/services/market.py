from decimal import Decimal
from typing import Dict, Iterable
from dashboard.core.models import ZERO

ONE = Decimal("1")
USD_QUOTE = "USDT"
BTC_QUOTE = "BTC"


class PriceBook:
    """
    Resolves USD prices from the `prices()` snapshot.

    Direct `<asset>USDT` quotes win; otherwise the `<asset>BTC` quote is
    crossed with BTCUSDT. Unknown assets price at 0.
    """

    def __init__(self, prices: Dict[str, str], stablecoins: Iterable[str]):
        self.prices = prices
        self.stablecoins = {s.upper() for s in stablecoins}

    def price(self, symbol: str) -> Decimal:
        value = self.prices.get(symbol)
        return Decimal(str(value)) if value else ZERO

    @property
    def btc_usd(self) -> Decimal:
        return self.price(f"{BTC_QUOTE}{USD_QUOTE}")

    def is_stable(self, asset: str) -> bool:
        return asset.upper() in self.stablecoins

    def usd_price(self, asset: str) -> Decimal:
        if self.is_stable(asset):
            return ONE
        direct = self.price(f"{asset}{USD_QUOTE}")
        if direct:
            return direct
        return self.price(f"{asset}{BTC_QUOTE}") * self.btc_usd

    def quote_usd(self, quote_asset: str) -> Decimal:
        """USD value of one unit of a pair's quote currency."""
        return self.usd_price(quote_asset)
