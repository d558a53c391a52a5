"""
Season-wide immutable parameters for the advent gift calendar.

These values define the public rules of every round.
Changing them changes committed leaves or winner selection and MUST be
publicly announced before the season starts.
"""

# One round per calendar day, day 1 .. day 24
ADVENT_DAYS = 24

# Hourly token airdrops run once per UTC hour of a round
HOURS_PER_DAY = 24

# The only hourly airdrop distribution: one seeded buyer per hour
HOURLY_RANDOM = "hourly_random"

# Default season tag and first calendar day (UTC)
DEFAULT_SEASON = "2025-season-1"
DEFAULT_SEASON_START = "2025-12-01"

# Tag stored on every round spec (where the pool comes from)
DEFAULT_DISTRIBUTION_SOURCE = "treasury_daily_fees"

# Salt entropy in bytes (hex-encoded, so 64 characters)
SALT_BYTES = 32

# Linear congruential generator driving the seeded shuffle.
# Changing these changes every past and future selection.
LCG_MULTIPLIER = 9301
LCG_INCREMENT = 49297
LCG_MODULUS = 233280
SEED_PREFIX_HEX_CHARS = 8

# SOL uses 9 decimals (lamports)
LAMPORTS_PER_SOL = 10**9

# Hint shown on the day of a round, before the full reveal
DEFAULT_HINT = "Mystery Gift"
DEFAULT_SUB_HINT = "Full details revealed tomorrow"
