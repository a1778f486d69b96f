"""Player access token helpers."""
import secrets

TOKEN_LENGTH = 32


def generate_player_token() -> str:
    """Generate a 32 character lowercase hex bearer token."""
    return secrets.token_hex(TOKEN_LENGTH // 2)


def mask_token(token: str | None) -> str:
    """Mask a token for logging."""
    if not token:
        return "<missing>"
    if len(token) <= 8:
        return f"{token[:2]}...{token[-2:]}"
    return f"{token[:4]}...{token[-4:]}"
