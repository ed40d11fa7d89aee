import secrets
import string
import time

from foldspace.constants import ID_LENGTH

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_id() -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(ID_LENGTH))


def ms_now() -> int:
    return time.time_ns() // 1_000_000
