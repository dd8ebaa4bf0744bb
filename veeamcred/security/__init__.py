"""
Decryption of the secrets Veeam products store in their databases and registry.

Two schemes are in use, depending on the product and its build:

  * Host protection: the secret is protected with Windows' machine-scoped Data Protection API,
    optionally with additional entropy. Only code running on the Veeam server itself can unprotect
    it, so decryption is proxied through the remote executor. (See dpapi.py.)
  * Legacy key: older Veeam ONE builds protect secrets with AES-128-CBC under a key derived from a
    passphrase compiled into the product. These are decrypted locally. (See encryption.py.)

The decryption module selects between them and reports every attempt as a three-way result, so that
"produced nothing" and "failed" are never confused.
"""


__author__ = 'Aaron Hosford'
__all__ = [
    'credentials',
    'decryption',
    'dpapi',
    'encryption',
    'results',
]
