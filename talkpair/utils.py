"""
Utility functions for ID generation
"""
import secrets
import string


def generate_client_id(length: int = 9) -> str:
    """Generate a random client identity for anonymous connections"""
    alphabet = string.ascii_lowercase + string.digits
    return "client_" + "".join(secrets.choice(alphabet) for _ in range(length))


def generate_room_id(length: int = 16) -> str:
    """Generate an opaque room token (hex)"""
    return "".join(secrets.choice("abcdef0123456789") for _ in range(length))
