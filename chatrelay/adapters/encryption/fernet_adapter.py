"""Fernet Encryption Adapter.

Architecture Hexagonale: EncryptionPort pour les clés API des vendors
conservées dans un KeyStorePort.

Les clés sont chiffrées avec Fernet. La clé Fernet est fournie telle
quelle (CHATRELAY_ENCRYPTION_KEY) ou dérivée d'une phrase secrète par
PBKDF2 (CHATRELAY_ENCRYPTION_SECRET). Les clés enregistrées en clair
avant la mise en place du chiffrement restent lisibles.
"""

import base64
import binascii
import re

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from chatrelay.ports.encryption import EncryptionPort


DEFAULT_SALT = "chatrelay-salt-v1"
PBKDF2_ITERATIONS = 480000

# Vendor key prefixes recognised when a stored value is not a Fernet token
RAW_API_KEY_PATTERN = re.compile(r"^(sk-|sk-proj-|sk-ant-|sk-or-|AIza|cpat_)")

# Version byte + timestamp + IV + HMAC: shortest possible token
_MIN_TOKEN_BYTES = 73
_TOKEN_VERSION = 0x80


def derive_fernet_key(secret: str, salt: str = DEFAULT_SALT) -> bytes:
    """Derive a urlsafe-base64 Fernet key from a passphrase."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt.encode(),
        iterations=PBKDF2_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(secret.encode()))


class FernetEncryptionAdapter(EncryptionPort):
    """Chiffrement des clés API par Fernet.

    Sans clé ni secret, une clé éphémère est générée: les valeurs
    chiffrées ne survivent alors pas au processus (utile en test).
    """

    def __init__(
        self,
        key: str | bytes | None = None,
        derive_from_secret: str | None = None,
        salt: str = DEFAULT_SALT,
    ):
        if key:
            fernet_key = key.encode() if isinstance(key, str) else key
        elif derive_from_secret:
            fernet_key = derive_fernet_key(derive_from_secret, salt)
        else:
            fernet_key = Fernet.generate_key()
        self._fernet = Fernet(fernet_key)

    def encrypt(self, plaintext: str) -> str:
        token = self._fernet.encrypt(plaintext.encode("utf-8"))
        return token.decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("ascii", "replace"))
        except InvalidToken as e:
            raise ValueError("Invalid encrypted data or wrong key") from e
        return plaintext.decode("utf-8")

    def decrypt_api_key(self, encrypted_key: str) -> str:
        """Déchiffre une clé stockée; une clé vendor en clair est renvoyée telle quelle.

        Raises:
            ValueError: Ni un jeton valide, ni une clé vendor reconnue
        """
        try:
            return self.decrypt(encrypted_key)
        except ValueError:
            if RAW_API_KEY_PATTERN.match(encrypted_key):
                return encrypted_key
            raise

    def is_encrypted(self, data: str) -> bool:
        try:
            raw = base64.urlsafe_b64decode(data.encode())
        except (binascii.Error, ValueError):
            return False
        return len(raw) >= _MIN_TOKEN_BYTES and raw[0] == _TOKEN_VERSION

    def generate_key(self) -> str:
        return Fernet.generate_key().decode("ascii")


class PlaintextEncryptionAdapter(EncryptionPort):
    """Identity cipher for key stores that hold plaintext values."""

    def encrypt(self, plaintext: str) -> str:
        return plaintext

    def decrypt(self, ciphertext: str) -> str:
        return ciphertext

    def is_encrypted(self, data: str) -> bool:
        return False

    def generate_key(self) -> str:
        return ""
