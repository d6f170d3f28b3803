# pqc_primitives/__init__.py

"""
PQC primitive adapters (kyber-py, dilithium-py, PyNaCl, PyCryptodome)
Concrete implementations of the collaborator interfaces in envelope.interfaces:
- Key encapsulation with Kyber768 (kyber-py), optionally combined with X25519 (PyNaCl)
- Digital signatures with Dilithium3 (dilithium-py)
- AES-256-GCM authenticated encryption (PyCryptodome)
- Key pair generation helpers returning base64 strings for key files
"""
from .digi_sign import Dilithium3Signer, sign_message, verify_signature
from .kem_operations import HybridX25519Kyber768Kem, Kyber768Kem, kyber_decapsulate, kyber_encapsulate
from .key_generation import generate_dilithium_keypair, generate_kem_keypair
from .symmetric_ciphers import AesGcmAead, aes_gcm_decrypt, aes_gcm_encrypt


def default_kem(hybrid: bool = True):
    """The KEM adapter matching the hybrid flag of the deployment."""
    return HybridX25519Kyber768Kem() if hybrid else Kyber768Kem()


__all__ = [
    "AesGcmAead",
    "Dilithium3Signer",
    "HybridX25519Kyber768Kem",
    "Kyber768Kem",
    "aes_gcm_decrypt",
    "aes_gcm_encrypt",
    "default_kem",
    "generate_dilithium_keypair",
    "generate_kem_keypair",
    "kyber_decapsulate",
    "kyber_encapsulate",
    "sign_message",
    "verify_signature",
]
