# pqc_primitives/key_generation.py

import base64
import logging
from typing import Tuple

from .digi_sign import Dilithium3Signer
from .kem_operations import HybridX25519Kyber768Kem, Kyber768Kem

logger = logging.getLogger(__name__)


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode('utf-8')


def generate_kem_keypair(hybrid: bool = True) -> Tuple[str, str]:
    """
    Generates a KEM key pair: X25519+Kyber768 when hybrid, Kyber768 alone otherwise.
    Returns:
        tuple: (public_key_b64, private_key_b64)
    """
    kem = HybridX25519Kyber768Kem() if hybrid else Kyber768Kem()
    logger.info(f"Generating {kem.name} keypair...")
    public_key_bytes, private_key_bytes = kem.keygen()
    return _b64(public_key_bytes), _b64(private_key_bytes)


def generate_dilithium_keypair() -> Tuple[str, str]:
    """
    Generates a Dilithium3 public/private key pair using dilithium-py.
    Returns:
        tuple: (public_key_b64, private_key_b64)
    """
    logger.info("Generating Dilithium3 keypair using dilithium-py...")
    public_key_bytes, private_key_bytes = Dilithium3Signer().keygen()
    return _b64(public_key_bytes), _b64(private_key_bytes)
