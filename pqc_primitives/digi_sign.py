# pqc_primitives/digi_sign.py
import logging
from typing import Tuple

from dilithium_py.dilithium import Dilithium3

from envelope.errors import SignatureError

logger = logging.getLogger(__name__)

DILITHIUM3_PUBLIC_KEY_SIZE = 1952
DILITHIUM3_SIGNATURE_SIZE = 3293


def sign_message(message_bytes: bytes, signer_secret_key: bytes) -> bytes:
    """
    Signs a message using the signer's Dilithium3 private key (dilithium-py).
    """
    logger.debug(f"Signing {len(message_bytes)} bytes with Dilithium3")
    try:
        return Dilithium3.sign(signer_secret_key, message_bytes)
    except Exception as e:
        raise SignatureError(f"Signing failed with Dilithium3: {e}") from e


def verify_signature(message_bytes: bytes, signature_bytes: bytes, signer_public_key: bytes) -> bool:
    if len(signer_public_key) != DILITHIUM3_PUBLIC_KEY_SIZE:
        logger.warning(f"Dilithium3 public key has unexpected length {len(signer_public_key)}")
        return False
    if len(signature_bytes) != DILITHIUM3_SIGNATURE_SIZE:
        logger.debug(f"Dilithium3 signature has unexpected length {len(signature_bytes)}")
        return False

    try:
        is_verified_by_lib = Dilithium3.verify(signer_public_key, message_bytes, signature_bytes)
    except ValueError as ve:
        logger.debug(f"Dilithium3 rejected malformed verification input: {ve}")
        return False
    except Exception as e:
        logger.warning(f"Signature verification encountered an unexpected error with Dilithium3: {e}")
        return False

    if not isinstance(is_verified_by_lib, bool):
        logger.warning(f"Unexpected return type from Dilithium3.verify: {type(is_verified_by_lib)}. Assuming failure.")
        return False
    return is_verified_by_lib


class Dilithium3Signer:
    """Dilithium3 adapter for the envelope SignatureScheme interface."""

    name = "Dilithium3"

    def keygen(self) -> Tuple[bytes, bytes]:
        return Dilithium3.keygen()

    def sign(self, message: bytes, secret_key: bytes) -> bytes:
        return sign_message(message, secret_key)

    def verify(self, message: bytes, signature: bytes, public_key: bytes) -> bool:
        return verify_signature(message, signature, public_key)
