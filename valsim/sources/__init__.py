from .moneycontrol import Moneycontrol
from .stock_data import StockDataFetcher
from .yahoo import YahooFinance

__all__ = [
    "Moneycontrol",
    "StockDataFetcher",
    "YahooFinance",
]
