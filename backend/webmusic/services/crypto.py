"""
NetEase "weapi" request signing.

The payload is AES-128-CBC encrypted twice, first with a fixed preset key and
then with a random 16 character key. The random key itself travels RSA
encrypted (reversed, no padding) in ``encSecKey``.
"""
import base64
import json
import secrets
import string
from typing import Any, Dict, Optional

from Crypto.Cipher import AES
from Crypto.Util.Padding import pad

IV = b"0102030405060708"
PRESET_KEY = "0CoJUm6Qyw8W8jud"
PUBLIC_KEY = "010001"
MODULUS = (
    "00e0b509f6259df8642dbc35662901477df22677ec152b5ff68ace615bb7b725"
    "152b3ab17a876aea8a5aa76d2e417629ec4ee341f56135fccf695280104e0312"
    "ecbda92557c93870114af6c9d05c4f7f0c3685b7a46bee255932575cce10b424"
    "d813cfe4875d3e82047b97ddef52741d546b8e289dc6935b3ece0462db0a22b8e7"
)
KEY_ALPHABET = string.ascii_letters + string.digits


def create_secret_key(size: int = 16) -> str:
    return "".join(secrets.choice(KEY_ALPHABET) for _ in range(size))


def aes_encrypt(text: str, key: str) -> str:
    """AES-128-CBC with PKCS#7 padding, returned base64 encoded."""
    cipher = AES.new(key.encode("utf-8"), AES.MODE_CBC, iv=IV)
    encrypted = cipher.encrypt(pad(text.encode("utf-8"), AES.block_size))
    return base64.b64encode(encrypted).decode("utf-8")


def rsa_encrypt(text: str, pub_key: str = PUBLIC_KEY, modulus: str = MODULUS) -> str:
    """Raw RSA of the reversed text, as 256 hex digits."""
    reversed_bytes = text.encode("utf-8")[::-1]
    encrypted = pow(int.from_bytes(reversed_bytes, "big"), int(pub_key, 16), int(modulus, 16))
    return format(encrypted, "x").zfill(256)


def weapi_encrypt(payload: Dict[str, Any], secret_key: Optional[str] = None) -> Dict[str, str]:
    """Build the ``params``/``encSecKey`` form body for a weapi endpoint."""
    secret_key = secret_key or create_secret_key(16)
    text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    params = aes_encrypt(aes_encrypt(text, PRESET_KEY), secret_key)
    return {
        "params": params,
        "encSecKey": rsa_encrypt(secret_key),
    }
