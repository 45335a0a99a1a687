from __future__ import annotations

# ──────────────────────────────────────────────────────────────────────────────
# Remote endpoints
# ──────────────────────────────────────────────────────────────────────────────
DEFAULT_CHAINS_URL = "https://assets.terra.money/station/chains.json"
DEFAULT_NETWORK = "mainnet"
KEYBASE_API_URL = "https://keybase.io/_/api/1.0"
VALIDATORS_PATH = "/cosmos/staking/v1beta1/validators"

# LCDs that only paginate correctly with a numeric offset
DEFAULT_OFFSET_LCDS: tuple[str, ...] = ("https://osmosis.feather.network",)

DEFAULT_PAGE_SIZE = 100
DEFAULT_CONCURRENCY = 2

# ──────────────────────────────────────────────────────────────────────────────
# Sentinel objects
# ──────────────────────────────────────────────────────────────────────────────
UNRESOLVED: object = object()     # identity could not be mapped to an image
