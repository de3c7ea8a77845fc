"""AES-256-GCM secret encryption with scrypt key derivation.

Blob layout: salt(32) || iv(16) || auth tag(16) || ciphertext.

Salt and IV are fresh on every call, so two encryptions of the same plaintext never
produce equal blobs. Change detection must use the fingerprint scheme of the secret
store, never ciphertext comparison.
"""

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from simple_secrets.core.errors import DecryptionError

KEY_LENGTH = 32  # AES-256
SALT_LENGTH = 32
IV_LENGTH = 16
AUTH_TAG_LENGTH = 16
HEADER_LENGTH = SALT_LENGTH + IV_LENGTH + AUTH_TAG_LENGTH

# Fixed so identical password/salt pairs always reproduce the same key
SCRYPT_N = 16384  # CPU/memory cost
SCRYPT_R = 8  # block size
SCRYPT_P = 1  # parallelization


def derive_key(password: str, salt: bytes) -> bytes:
    """Derive a 256-bit key from the password with scrypt."""
    kdf = Scrypt(salt=salt, length=KEY_LENGTH, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(password.encode("utf-8"))


def encrypt(plaintext: str, password: str) -> bytes:
    """Encrypt plaintext under password and return the self-describing blob."""
    salt = os.urandom(SALT_LENGTH)
    iv = os.urandom(IV_LENGTH)
    key = derive_key(password, salt)
    sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    # AESGCM appends the tag; the blob keeps it in front of the ciphertext
    ciphertext, tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
    return salt + iv + tag + ciphertext


def decrypt(blob: bytes, password: str) -> str:
    """Decrypt a blob produced by encrypt().

    Every failure (truncation, wrong password, tampered header, tag or body, invalid
    UTF-8) raises the same DecryptionError.
    """
    if len(blob) < HEADER_LENGTH:
        raise DecryptionError()

    salt = blob[:SALT_LENGTH]
    iv = blob[SALT_LENGTH : SALT_LENGTH + IV_LENGTH]
    tag = blob[SALT_LENGTH + IV_LENGTH : HEADER_LENGTH]
    ciphertext = blob[HEADER_LENGTH:]

    key = derive_key(password, salt)
    try:
        plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
        return plaintext.decode("utf-8")
    except (InvalidTag, UnicodeDecodeError):
        raise DecryptionError() from None
