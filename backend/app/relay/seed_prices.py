"""Seed prices and per-symbol parameters for the simulated provider."""

# Reference prices (INR) for common NSE large caps
SEED_PRICES: dict[str, float] = {
    "RELIANCE": 2450.75,
    "TCS": 3890.50,
    "HDFCBANK": 1687.25,
    "INFY": 1456.80,
    "ICICIBANK": 956.45,
    "KOTAKBANK": 1789.60,
    "SBIN": 542.30,
    "BHARTIARTL": 1234.90,
    "ITC": 467.85,
    "LT": 3456.20,
    "AXISBANK": 1098.75,
    "ASIANPAINT": 2987.40,
    "MARUTI": 10875.60,
    "M&M": 2687.35,
    "NETWORK18": 78.45,
    "SUNPHARMA": 1245.80,
    "TITAN": 3421.90,
    "WIPRO": 567.25,
    "NESTLEIND": 2345.70,
    "HINDUNILVR": 2456.85,
}

# Per-symbol GBM parameters
# sigma: annualized volatility, mu: annualized drift
SYMBOL_PARAMS: dict[str, dict[str, float]] = {
    "RELIANCE": {"sigma": 0.24, "mu": 0.08},
    "TCS": {"sigma": 0.22, "mu": 0.07},
    "INFY": {"sigma": 0.26, "mu": 0.07},
    "WIPRO": {"sigma": 0.28, "mu": 0.05},
    "HDFCBANK": {"sigma": 0.20, "mu": 0.08},
    "ICICIBANK": {"sigma": 0.24, "mu": 0.09},
    "SBIN": {"sigma": 0.30, "mu": 0.08},
    "NETWORK18": {"sigma": 0.55, "mu": 0.02},  # Small cap, noisy
    "ITC": {"sigma": 0.18, "mu": 0.06},
    "HINDUNILVR": {"sigma": 0.17, "mu": 0.05},
}

# Default parameters for symbols not listed above
DEFAULT_PARAMS: dict[str, float] = {"sigma": 0.25, "mu": 0.06}

# Sector groups; members move together
CORRELATION_GROUPS: dict[str, set[str]] = {
    "it": {"TCS", "INFY", "WIPRO"},
    "banks": {"HDFCBANK", "ICICIBANK", "KOTAKBANK", "SBIN", "AXISBANK"},
    "consumer": {"ITC", "HINDUNILVR", "NESTLEIND", "ASIANPAINT", "TITAN"},
}

INTRA_IT_CORR = 0.6
INTRA_BANK_CORR = 0.65
INTRA_CONSUMER_CORR = 0.4
CROSS_GROUP_CORR = 0.3  # Different sectors, or no sector
