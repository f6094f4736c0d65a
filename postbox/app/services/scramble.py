import base64
import hashlib
import hmac
import string

SCRAMBLE_LENGTH = 21
SCRAMBLE_ALPHABET = frozenset(string.ascii_letters + string.digits + '-_')


def derive_scramble(key: bytes, name: str) -> str:
    """Derive the storage directory name for ``name``.

    HMAC-MD5 of the UTF-8 encoded name under ``key``, URL-safe base64 encoded
    and cut to the first 21 characters. The same key and name always give the
    same scramble; without the key it cannot be predicted.
    """
    mac = hmac.new(key, name.encode('utf-8'), hashlib.md5).digest()
    return base64.urlsafe_b64encode(mac).decode('ascii')[:SCRAMBLE_LENGTH]
