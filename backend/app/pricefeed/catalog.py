"""Configured price sources and seed instruments for the commodity simulator."""

from .models import SourceDescriptor

# Provider endpoints. `{base_url}` is filled from COMMODITY_API_BASE_URL.
SOURCES: tuple[SourceDescriptor, ...] = (
    SourceDescriptor("USDA", "{base_url}/usda/commodities", "USDA", "canonical"),
    SourceDescriptor("CME", "{base_url}/cme/prices", "CME Group", "quote"),
    SourceDescriptor("ICE", "{base_url}/ice/futures", "ICE", "quote"),
    SourceDescriptor("FAO", "{base_url}/fao/prices", "FAO", "canonical"),
    SourceDescriptor("WORLDBANK", "{base_url}/worldbank/commodities", "World Bank", "canonical"),
)

SOURCES_BY_KEY: dict[str, SourceDescriptor] = {s.key: s for s in SOURCES}

# Seed instruments: starting price, quoting unit, category, publishing
# provider and provenance URL.
# sigma: annualized volatility used by the simulator's GBM step
SEED_INSTRUMENTS: dict[str, dict] = {
    "Wheat (Hard Red Winter)": {
        "price": 6.75,
        "unit": "bushel",
        "category": "grains",
        "source": "USDA",
        "url": "https://www.usda.gov/oce/commodity/wasde",
        "sigma": 0.30,
    },
    "Corn": {
        "price": 4.25,
        "unit": "bushel",
        "category": "grains",
        "source": "CME",
        "url": "https://www.cmegroup.com/markets/agriculture/grains/corn.html",
        "sigma": 0.28,
    },
    "Soybeans": {
        "price": 13.85,
        "unit": "bushel",
        "category": "oilseeds",
        "source": "CME",
        "url": "https://www.cmegroup.com/markets/agriculture/oilseeds/soybean.html",
        "sigma": 0.22,
    },
    "Rice (Rough)": {
        "price": 17.25,
        "unit": "cwt",
        "category": "grains",
        "source": "FAO",
        "url": "https://www.fao.org/markets-and-trade/commodities/rice/en/",
        "sigma": 0.15,
    },
    "Barley": {
        "price": 5.45,
        "unit": "bushel",
        "category": "grains",
        "source": "USDA",
        "url": "https://www.usda.gov/oce/commodity/wasde",
        "sigma": 0.25,
    },
    "Oats": {
        "price": 3.85,
        "unit": "bushel",
        "category": "grains",
        "source": "CME",
        "url": "https://www.cmegroup.com/markets/agriculture/grains/oats.html",
        "sigma": 0.35,
    },
    "Palm Oil": {
        "price": 1125.50,
        "unit": "ton",
        "category": "oilseeds",
        "source": "WORLDBANK",
        "url": "https://www.worldbank.org/en/research/commodity-markets",
        "sigma": 0.30,
    },
    "Rapeseed": {
        "price": 475.25,
        "unit": "ton",
        "category": "oilseeds",
        "source": "ICE",
        "url": "https://www.theice.com/products/254/Rapeseed-Futures",
        "sigma": 0.20,
    },
}

DEFAULT_SIGMA = 0.25

# Correlation between instruments, by category
INTRA_CATEGORY_CORR = 0.6  # Grains move together, as do oilseeds
CROSS_CATEGORY_CORR = 0.3
