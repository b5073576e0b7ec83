# app/security.py
import bcrypt

# bcrypt only looks at the first 72 bytes of a secret
_BCRYPT_MAX_BYTES = 72


def _secret(plaintext: str) -> bytes:
    return plaintext.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plaintext: str) -> str:
    return bcrypt.hashpw(_secret(plaintext), bcrypt.gensalt()).decode("utf-8")


def verify_password(plaintext: str, stored_hash: str) -> bool:
    if not plaintext or not stored_hash:
        return False
    try:
        return bcrypt.checkpw(_secret(plaintext), stored_hash.encode("utf-8"))
    except ValueError:
        # not a bcrypt hash
        return False
