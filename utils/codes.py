"""Battle join code utilities.

Join codes are short strings players read aloud or paste into `/battle join`.
The alphabet leaves out characters that are easy to confuse (0/O, 1/I).
"""

import secrets

# 24 letters + 8 digits
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

DEFAULT_CODE_LENGTH = 6


def generate_code(alphabet: str = CODE_ALPHABET, length: int = DEFAULT_CODE_LENGTH) -> str:
    """Generate a random code of the given length drawn from alphabet."""
    if not alphabet:
        raise ValueError("alphabet must not be empty")
    if length < 1:
        raise ValueError("length must be positive")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def normalize_code(code: str) -> str:
    """Normalize user input for lookup. Codes are stored uppercase."""
    return (code or "").strip().upper()
