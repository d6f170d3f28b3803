# envelope/key_manager.py
import base64
import binascii
import json
import logging
import os
from typing import Dict, Iterable, Optional

from pqc_primitives import key_generation

from .errors import KeyManagerError

logger = logging.getLogger(__name__)

DEFAULT_KEY_FILE = "envelope_keys.json"


class KeyManager:
    """
    Manages KEM and signature key pairs for named parties (senders and recipients).
    Loads keys from a JSON file and generates them for parties that are missing.
    Private keys are stored in the same file, which is written with 0600 permissions.
    """
    def __init__(self, key_file_path: str = DEFAULT_KEY_FILE, hybrid: bool = True):
        self.key_file_path = key_file_path
        self.hybrid = hybrid
        self.party_keys: Dict[str, Dict[str, str]] = {}
        self._is_dirty = False  # set when keys were generated and need saving
        self._load_keys()

    def _load_keys(self) -> None:
        if not os.path.exists(self.key_file_path):
            logger.info(f"No key file at {self.key_file_path}; keys will be generated on demand")
            return
        try:
            with open(self.key_file_path, 'r') as f:
                self.party_keys = json.load(f)
        except (IOError, json.JSONDecodeError) as e:
            raise KeyManagerError(f"Error loading keys from {self.key_file_path}: {e}") from e
        logger.info(f"Loaded keys for {len(self.party_keys)} parties from {self.key_file_path}")

    def ensure_parties(self, party_ids: Iterable[str]) -> None:
        """Generates keys for every party that has none yet, then saves if anything changed."""
        for party_id in party_ids:
            self.ensure_party(party_id)
        self.save()

    def ensure_party(self, party_id: str) -> None:
        keys = self.party_keys.get(party_id)
        if keys and keys.get("hybrid") == self.hybrid:
            return
        if keys:
            logger.warning(
                f"Keys for '{party_id}' were generated with hybrid={keys.get('hybrid')}; "
                f"regenerating for hybrid={self.hybrid}"
            )
        self._generate_keys_for_party(party_id)

    def _generate_keys_for_party(self, party_id: str) -> None:
        logger.info(f"Generating envelope keys for party: {party_id}...")
        kem_pk_b64, kem_sk_b64 = key_generation.generate_kem_keypair(hybrid=self.hybrid)
        sig_pk_b64, sig_sk_b64 = key_generation.generate_dilithium_keypair()
        self.party_keys[party_id] = {
            "hybrid": self.hybrid,
            "kem_pk_b64": kem_pk_b64,
            "kem_sk_b64": kem_sk_b64,
            "sig_pk_b64": sig_pk_b64,
            "sig_sk_b64": sig_sk_b64,
        }
        self._is_dirty = True

    def save(self) -> None:
        if not self._is_dirty:
            logger.debug("No changes to party keys, skipping save.")
            return
        key_dir = os.path.dirname(self.key_file_path)
        if key_dir:
            os.makedirs(key_dir, exist_ok=True)
        try:
            fd = os.open(self.key_file_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, 'w') as f:
                json.dump(self.party_keys, f, indent=4)
        except OSError as e:
            raise KeyManagerError(f"Error saving party keys to {self.key_file_path}: {e}") from e
        self._is_dirty = False
        logger.info(f"Party keys saved to {self.key_file_path}")

    def _get(self, party_id: str, field: str) -> bytes:
        keys = self.party_keys.get(party_id)
        value: Optional[str] = keys.get(field) if keys else None
        if not value:
            raise KeyManagerError(f"Key '{field}' not found for party '{party_id}'")
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as e:
            raise KeyManagerError(f"Key '{field}' for party '{party_id}' is not valid base64") from e

    def get_kem_public_key(self, party_id: str) -> bytes:
        return self._get(party_id, "kem_pk_b64")

    def get_kem_private_key(self, party_id: str) -> bytes:
        return self._get(party_id, "kem_sk_b64")

    def get_signing_public_key(self, party_id: str) -> bytes:
        return self._get(party_id, "sig_pk_b64")

    def get_signing_private_key(self, party_id: str) -> bytes:
        return self._get(party_id, "sig_sk_b64")
