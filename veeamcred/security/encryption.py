"""
veeamcred.security.encryption
=============================

The legacy Veeam ONE secret format, used before DPAPI protection was introduced (between builds
11.0.0 and 11.0.1).

A protected secret is laid out as [16-byte salt][16-byte IV][ciphertext]. The AES-128 key is derived
from a passphrase compiled into the product, using PBKDF2-HMAC-SHA1 with 1000 iterations and the
salt stored with the secret. The ciphertext is AES-128-CBC with PKCS7 padding.

Nothing here contacts the target host.
"""


import os


# For documentation on the cryptography library, or to download it, visit:
#   https://cryptography.io/en/latest/
# To install with pip:
#   pip install cryptography
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..exceptions import DecryptionError, EncryptionError


__author__ = 'Aaron Hosford'
__all__ = [
    'to_bytes',
    'from_bytes',
    'derive_legacy_key',
    'legacy_encrypt',
    'legacy_decrypt',
]


LEGACY_PASSPHRASE = b'123456789'
LEGACY_ITERATIONS = 1000

SALT_SIZE = 16
IV_SIZE = 16
KEY_SIZE = 16
BLOCK_SIZE_BITS = 128

HEADER_SIZE = SALT_SIZE + IV_SIZE


def to_bytes(data):
    """
    Ensure that a character sequence is represented as a bytes object. If it's already a bytes
    object, no change is made. If it's a string object, it's encoded as a UTF-8 string. Otherwise,
    it is treated as a sequence of character ordinal values.

    :param data: The data to be converted to bytes.
    :return: The data, converted to a bytes instance.
    """

    if isinstance(data, str):
        return data.encode()
    else:
        return bytes(data)


def from_bytes(data):
    """
    Convert recovered plaintext bytes to text. NUL bytes are dropped, which flattens UTF-16LE text
    of the ASCII range to plain text, and any bytes that are not valid UTF-8 are preserved as
    surrogate escapes rather than replaced.

    :param data: The data to be converted.
    :return: The data, converted to a str instance.
    """

    if isinstance(data, str):
        return data.replace('\x00', '')
    return bytes(data).replace(b'\x00', b'').decode('utf-8', 'surrogateescape')


def derive_legacy_key(salt, passphrase=LEGACY_PASSPHRASE):
    """
    Derive the AES-128 key for a legacy secret.

    :param salt: The 16-byte salt stored at the start of the secret.
    :param passphrase: The passphrase. Defaults to the one compiled into the product.
    :return: The 16-byte key.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA1(),
        length=KEY_SIZE,
        salt=to_bytes(salt),
        iterations=LEGACY_ITERATIONS,
    )
    return kdf.derive(to_bytes(passphrase))


def legacy_encrypt(data, salt=None, iv=None, passphrase=LEGACY_PASSPHRASE):
    """
    Protect data in the legacy format. Random salt and IV values are used unless provided.

    :param data: The plaintext to protect.
    :param salt: An optional 16-byte salt.
    :param iv: An optional 16-byte initialization vector.
    :param passphrase: The passphrase. Defaults to the one compiled into the product.
    :return: The protected secret, as bytes.
    """
    salt = os.urandom(SALT_SIZE) if salt is None else to_bytes(salt)
    iv = os.urandom(IV_SIZE) if iv is None else to_bytes(iv)
    if len(salt) != SALT_SIZE or len(iv) != IV_SIZE:
        raise EncryptionError("Salt and IV must each be %d bytes." % SALT_SIZE)

    padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
    padded = padder.update(to_bytes(data)) + padder.finalize()

    encryptor = Cipher(algorithms.AES(derive_legacy_key(salt, passphrase)), modes.CBC(iv)).encryptor()
    return salt + iv + encryptor.update(padded) + encryptor.finalize()


def legacy_decrypt(data, passphrase=LEGACY_PASSPHRASE):
    """
    Recover the plaintext of a legacy secret. Note that the return value is a bytes instance; use
    from_bytes() to turn it into text.

    :param data: The raw protected secret (not base64).
    :param passphrase: The passphrase. Defaults to the one compiled into the product.
    :return: The decrypted data.
    """
    data = to_bytes(data)
    if len(data) < HEADER_SIZE:
        raise DecryptionError("Secret is %d bytes, shorter than the %d-byte salt and IV header." %
                              (len(data), HEADER_SIZE))

    salt = data[:SALT_SIZE]
    iv = data[SALT_SIZE:HEADER_SIZE]
    ciphertext = data[HEADER_SIZE:]

    decryptor = Cipher(algorithms.AES(derive_legacy_key(salt, passphrase)), modes.CBC(iv)).decryptor()
    unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()

    # A ValueError here indicates a truncated ciphertext or, more often, a different key.
    try:
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as exc:
        raise DecryptionError("Legacy secret could not be decrypted: %s" % exc) from exc
