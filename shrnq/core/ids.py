import secrets
import string

ALPHANUMERIC = string.digits + string.ascii_uppercase + string.ascii_lowercase
URL_SAFE = string.ascii_letters + string.digits + "_-"


def random_id(size: int, alphabet: str = URL_SAFE) -> str:
    """Uniformly random string of ``size`` symbols drawn with the secrets CSPRNG."""
    return "".join(secrets.choice(alphabet) for _ in range(size))
