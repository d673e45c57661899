"""
Learn2Go Utilities
"""
from .jwt_handler import create_access_token, verify_token, get_current_user, get_admin_user
from .validators import validate_email, validate_password
from .encryption import encrypt_secret, decrypt_secret, mask_secret
