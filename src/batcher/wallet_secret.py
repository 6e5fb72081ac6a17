import base64
import hashlib

from cryptography.fernet import Fernet


def _fernet(password: str) -> Fernet:
    # Derive a key from the password
    key = hashlib.sha256(password.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(key))


def encrypt_mnemonic(mnemonic: str, password: str) -> str:
    return _fernet(password).encrypt(mnemonic.encode("utf-8")).decode("utf-8")


def decrypt_mnemonic(cipher_text: str, password: str) -> str:
    """Raises ``cryptography.fernet.InvalidToken`` on a wrong password."""
    return _fernet(password).decrypt(cipher_text.encode("utf-8")).decode("utf-8")


def split_mnemonic(phrase: str | None) -> list[str]:
    """Split a space separated seed phrase into words."""
    return phrase.split() if phrase else []


def resolve_mnemonic(seed_phrase: str | None, cipher_text: str | None, password: str | None) -> list[str]:
    """
    Pick the mnemonic from the clear seed phrase or the decrypted cipher text.

    :return: Seed words
    """
    if seed_phrase:
        return split_mnemonic(seed_phrase)
    if cipher_text:
        if not password:
            raise ValueError("A password is required to decrypt CIPHER_TEXT")
        return split_mnemonic(decrypt_mnemonic(cipher_text, password))
    raise ValueError("SEED_PHRASE env is empty")
