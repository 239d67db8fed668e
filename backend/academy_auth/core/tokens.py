from __future__ import annotations

import secrets


class TokenGenerator:
    """Cryptographically random codes and tokens."""

    def __init__(self, *, code_digits: int = 6, reset_token_bytes: int = 32):
        self.code_digits = int(code_digits)
        self.reset_token_bytes = int(reset_token_bytes)

    def verification_code(self) -> str:
        # Always exactly `code_digits` digits, never a leading zero.
        low = 10 ** (self.code_digits - 1)
        return str(low + secrets.randbelow(9 * low))

    def reset_token(self) -> str:
        return secrets.token_hex(self.reset_token_bytes)

    def oauth_state(self) -> str:
        return secrets.token_urlsafe(24)
