"""
Encryption of integration tokens stored at rest
"""
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from mediation_intake.core.config import settings

_fernet: Optional[Fernet] = None


def get_fernet() -> Fernet:
    """Get or create the Fernet instance for token encryption"""
    global _fernet
    if _fernet is None:
        key = settings.security.token_encryption_key
        if not key:
            raise RuntimeError(
                "security.token_encryption_key is not configured. "
                'Generate with: python -c "from cryptography.fernet import Fernet; '
                'print(Fernet.generate_key().decode())"'
            )
        _fernet = Fernet(key.encode())
    return _fernet


def encrypt_token(token: Optional[str]) -> str:
    """Encrypt a token for storage"""
    if not token:
        return ""
    return get_fernet().encrypt(token.encode()).decode()


def decrypt_token(encrypted: Optional[str]) -> str:
    """Decrypt a stored token"""
    if not encrypted:
        return ""
    try:
        return get_fernet().decrypt(encrypted.encode()).decode()
    except InvalidToken:
        raise ValueError("Invalid or corrupted encrypted token")
