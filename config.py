# --- File: config.py ---
import os
from dotenv import load_dotenv
import logging

load_dotenv()

LOG_LEVEL_FROM_ENV = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, LOG_LEVEL_FROM_ENV, logging.INFO)

logging.basicConfig(
    level=numeric_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# --- Key & Policy Files ---
ENVELOPE_KEYS_FILE = os.getenv("ENVELOPE_KEYS_FILE", "envelope_keys.json")
POLICY_BUNDLE_FILE = os.getenv("POLICY_BUNDLE_FILE", "policy_bundle.json")
POLICY_BUNDLE_TTL_S = int(os.getenv("POLICY_BUNDLE_TTL_S", "3600"))

# --- Protocol Settings ---
MAX_ENVELOPE_BYTES = int(os.getenv("MAX_ENVELOPE_BYTES", str(1 << 20)))
REQUIRED_ALGS = os.getenv("REQUIRED_ALGS", "ML-KEM-768+ML-DSA-65+AES-256-GCM")
# Hybrid mode combines X25519 with Kyber768; both sides must agree on it
HYBRID_MODE = os.getenv("HYBRID_MODE", "true").lower() == 'true'
DEVICE_ATTEST_HASH_HEX = os.getenv("DEVICE_ATTEST_HASH_HEX")  # optional, hex encoded


# --- Basic Validation ---
if MAX_ENVELOPE_BYTES > (1 << 20):
    logger.warning(f"MAX_ENVELOPE_BYTES={MAX_ENVELOPE_BYTES} exceeds the 1 MiB protocol ceiling; the ceiling applies.")
if POLICY_BUNDLE_TTL_S <= 0:
    logger.warning("POLICY_BUNDLE_TTL_S is not positive; signed policy bundles will be stale immediately.")
if not HYBRID_MODE:
    logger.warning("HYBRID_MODE is disabled. Key establishment relies on Kyber768 alone.")
