from werkzeug.security import generate_password_hash, check_password_hash


def generate_hash(password: str) -> str:
    return generate_password_hash(password)


def check_hash(password: str, hashed: str) -> bool:
    """False for a malformed or empty stored hash instead of raising."""
    if not hashed:
        return False
    try:
        return check_password_hash(hashed, password)
    except ValueError:
        return False
