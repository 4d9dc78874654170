"""Conversion of store prices into the single display currency (EUR)."""
import math
from typing import Optional

DISPLAY_CURRENCY = "EUR"
DISPLAY_SYMBOL = "€"

# Approximate fixed rates: 1 unit of <code> in EUR.
_RATES_TO_EUR = {
   "EUR": 1.0,
   "USD": 0.92,
   "GBP": 1.17,
   "CAD": 0.68,
   "AUD": 0.61,
   "NZD": 0.56,
   "CHF": 1.04,
   "SEK": 0.087,
   "NOK": 0.086,
   "DKK": 0.134,
   "PLN": 0.23,
   "BRL": 0.17,
   "MXN": 0.05,
   "JPY": 0.0062,
   "CNY": 0.13,
   "KRW": 0.00068,
   "INR": 0.011,
   "RUB": 0.01,
   "TRY": 0.028,
}

# Unknown codes are treated as USD-like.
DEFAULT_RATE = 0.92

def rate_for(currency: Optional[str]) -> float:
   return _RATES_TO_EUR.get((currency or "").strip().upper(), DEFAULT_RATE)

def normalize(amount: float, currency: Optional[str]) -> float:
   return float(amount) * rate_for(currency)

def format_price(amount: float) -> str:
   if not math.isfinite(amount):
      amount = 0.0
   if round(amount, 2) == 0:
      amount = 0.0   # no "€-0.00"
   return f"{DISPLAY_SYMBOL}{amount:0.2f}"
