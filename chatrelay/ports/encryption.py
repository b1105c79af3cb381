"""Encryption Port - Interface Abstraite.

Architecture Hexagonale: Port de chiffrement des clés API vendor lues
dans un KeyStorePort. Les appels sont synchrones: ils n'ont lieu qu'à la
construction des adapters LLM.
"""

from abc import ABC, abstractmethod


class EncryptionPort(ABC):
    """Chiffrement symétrique des valeurs d'un key store."""

    @abstractmethod
    def encrypt(self, plaintext: str) -> str:
        """Chiffre une valeur avant stockage."""
        ...

    @abstractmethod
    def decrypt(self, ciphertext: str) -> str:
        """Déchiffre une valeur stockée.

        Raises:
            ValueError: Jeton invalide ou mauvaise clé
        """
        ...

    def encrypt_api_key(self, api_key: str) -> str:
        return self.encrypt(api_key)

    def decrypt_api_key(self, encrypted_key: str) -> str:
        """Hook pour les adapters qui acceptent d'anciens formats de stockage."""
        return self.decrypt(encrypted_key)

    def safe_decrypt(self, data: str) -> str | None:
        """decrypt() qui renvoie None au lieu de lever ValueError."""
        try:
            return self.decrypt(data)
        except ValueError:
            return None

    @abstractmethod
    def is_encrypted(self, data: str) -> bool:
        """Heuristique: la valeur ressemble-t-elle à un jeton chiffré ?"""
        ...

    @abstractmethod
    def generate_key(self) -> str:
        """Nouvelle clé utilisable par l'adapter."""
        ...
