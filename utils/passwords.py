# =============================================================================
# utils/passwords.py - Random initial password generation
# =============================================================================

import secrets
import string

PASSWORD_LENGTH = 12
SYMBOLS = "!@#$%^&*()-_=+[]{}?"

CHARACTER_CLASSES = (
    string.ascii_lowercase,
    string.ascii_uppercase,
    string.digits,
    SYMBOLS,
)


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """Random password with at least one lowercase, uppercase, digit and symbol"""
    if length < len(CHARACTER_CLASSES):
        raise ValueError(f"Password length must be at least {len(CHARACTER_CLASSES)}")

    password_chars = [secrets.choice(chars) for chars in CHARACTER_CLASSES]

    pool = "".join(CHARACTER_CLASSES)
    password_chars.extend(secrets.choice(pool) for _ in range(length - len(password_chars)))

    secrets.SystemRandom().shuffle(password_chars)
    return "".join(password_chars)
