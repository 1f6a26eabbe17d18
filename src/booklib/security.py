# security.py
import bcrypt

from .settings import settings

def hash_password(plain: str, rounds: int | None = None) -> str:
    password_bytes = plain.encode('utf-8')
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password_bytes, salt).decode('utf-8')

def verify_password(plain: str, hashed: str | None) -> bool:
    # Missing or malformed hashes never verify
    if not plain or not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode('utf-8'), hashed.encode('utf-8'))
    except ValueError:
        return False
