from academy_auth.models.account import NAME_MAX_LENGTH, Account, Role, normalize_email

__all__ = [
    "NAME_MAX_LENGTH",
    "Account",
    "Role",
    "normalize_email",
]
