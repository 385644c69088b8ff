"""Vested settlement configuration constants.

Keep this file aligned with the deployed settlement contract's constants.
"""

# Identities
ADDRESS_LEN = 32
ASSET_ID_LEN = 32

# Integer bounds (token balances are u256 on the reference chain)
U256_MAX = (1 << 256) - 1
U64_MAX = (1 << 64) - 1

# Time
SECONDS_PER_DAY = 24 * 60 * 60
SECOND_UNLOCK_DELAY = 90 * SECONDS_PER_DAY
THIRD_UNLOCK_DELAY = 180 * SECONDS_PER_DAY

# Vesting schedule (percent of the original settlement amount)
PERCENT_DENOMINATOR = 100
FIRST_TRANCHE_PERCENT = 50
SECOND_TRANCHE_PERCENT = 25
THIRD_TRANCHE_PERCENT = 25

# Units
USDC_DECIMALS = 6
USDC_UNIT = 10**USDC_DECIMALS
DEFAULT_SETTLEMENT_AMOUNT = 100_000 * USDC_UNIT  # 100K USDC
