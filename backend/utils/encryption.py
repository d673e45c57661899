"""
Encryption utilities for secrets kept in system settings
"""
import base64
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from config import settings

KDF_SALT = b'learn2go_settings_salt'


def _get_fernet():
    """Get Fernet instance with a key derived from ENCRYPTION_KEY"""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=KDF_SALT,
        iterations=100000,
    )
    key = base64.urlsafe_b64encode(kdf.derive(settings.ENCRYPTION_KEY.encode()))
    return Fernet(key)


def encrypt_secret(secret: str) -> str:
    """Encrypt a secret for storage"""
    if not secret:
        return ""
    return _get_fernet().encrypt(secret.encode()).decode()


def decrypt_secret(token: str) -> str:
    """Decrypt a stored secret; returns '' if it cannot be decrypted"""
    if not token:
        return ""
    try:
        return _get_fernet().decrypt(token.encode()).decode()
    except (InvalidToken, ValueError):
        return ""


def mask_secret(secret: str) -> str:
    """Mask a secret for display (show only last 4 characters)"""
    if not secret or len(secret) < 8:
        return "****"
    return f"****{secret[-4:]}"
