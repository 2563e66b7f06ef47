"""Fixed parameters of the hand-off code / token protocol.

These are part of the artifact format shared with relay terminals and client
apps; they are not runtime configuration.
"""

# No 0/O and 1/I so codes survive being read aloud or typed from a receipt
CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
CODE_LENGTH = 6

# Validity window measured from issuedAt / record creation, in epoch ms
CODE_TTL_MS = 24 * 60 * 60 * 1000

DEFAULT_KEY_SALT = 'relayfix-handoff-token'
KDF_ITERATIONS = 100_000
