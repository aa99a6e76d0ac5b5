"""SafeHands escrow spec configuration constants.

Keep this file aligned with the on-chain contract's integer widths and the
ledger time unit (seconds).
"""

# Integer widths
U64_MAX = 2**64 - 1
U128_MAX = 2**128 - 1

# Addresses and assets are 32-byte account keys / contract ids
ADDRESS_LEN = 32
ASSET_ID_LEN = 32

# Ids are assigned from 1 upwards; 0 is never a valid escrow id
FIRST_ESCROW_ID = 1

# Deadlines
SECONDS_PER_DAY = 86_400
NO_DEADLINE = 0

# Ledger
CUSTODY_ADDRESS = bytes(32)
GENESIS_TIMESTAMP = 1_700_000_000
