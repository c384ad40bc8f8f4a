"""
Fixed parameters of the fair launch program and the candy machine it feeds.

These mirror on-chain layouts and error codes. Changing them changes how
accounts are decoded and how ledger failures are classified.
"""

LAMPORTS_PER_SOL = 1_000_000_000

# Lottery bitmask account: discriminator | fair launch | bump | bitmask ones
FAIR_LAUNCH_LOTTERY_SIZE = 8 + 32 + 1 + 8

# Anchor account discriminator width
DISCRIMINATOR_SIZE = 8

# Candy machine custom program errors
ERR_NOT_ENOUGH_SOL = 0x135  # 309
ERR_CANDY_MACHINE_EMPTY = 0x137  # 311
ERR_CANDY_MACHINE_NOT_LIVE = 0x138  # 312

# System program: transfer with insufficient lamports
ERR_SYSTEM_INSUFFICIENT_LAMPORTS = 1

# Confirmation polling defaults (seconds)
DEFAULT_TX_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_COMMITMENT = "confirmed"

# Program ids
FAIR_LAUNCH_PROGRAM_ID = "faircnAB9k59Y4TXmLabBULeuTLgV7TkGMGNkjnA15j"
CANDY_MACHINE_PROGRAM_ID = "cndy3Z4yapfJBmL3ShUp5exZKqR3z33thTzeNMm2gRZ"
