import logging
from dataclasses import dataclass
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from src.base.config.settings import AuthSettings, is_local_development

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyPair:
    """PEM-encoded signing key and its public verification key.

    Only the token issuer needs ``private_pem``; resource servers are given
    ``public_pem`` alone.
    """

    private_pem: str | None
    public_pem: str


def _private_to_pem(private_key) -> str:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


def _public_to_pem(public_key) -> str:
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")


def generate_key_pair(key_size: int = 2048) -> KeyPair:
    """Generate an ephemeral RSA key pair (tokens do not survive a restart)."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    return KeyPair(
        private_pem=_private_to_pem(private_key),
        public_pem=_public_to_pem(private_key.public_key()),
    )


def _load_private_key(pem: bytes, passphrase: str | None):
    password = passphrase.encode("utf-8") if passphrase else None
    return serialization.load_pem_private_key(pem, password=password)


def load_key_pair(settings: AuthSettings) -> KeyPair:
    """Resolve the signing key pair from settings.

    Resolution order (first match wins):
    1. JWT_PRIVATE_KEY_PEM       -> inline private key, public key derived
    2. JWT_PRIVATE_KEY_PATH      -> private key file, public key from
                                    JWT_PUBLIC_KEY_PATH or derived
    3. JWT_PUBLIC_KEY_PATH only  -> verification-only key pair
    4. ENVIRONMENT=development   -> generated ephemeral key pair
    """
    if settings.private_key_pem:
        private_key = _load_private_key(
            settings.private_key_pem.encode("utf-8"), settings.passphrase
        )
        logger.info("Loaded JWT signing key from environment")
        return KeyPair(
            private_pem=_private_to_pem(private_key),
            public_pem=_public_to_pem(private_key.public_key()),
        )

    if settings.private_key_path:
        private_key = _load_private_key(
            Path(settings.private_key_path).read_bytes(), settings.passphrase
        )
        if settings.public_key_path:
            public_pem = Path(settings.public_key_path).read_text(encoding="utf-8")
        else:
            public_pem = _public_to_pem(private_key.public_key())
        logger.info("Loaded JWT signing key from %s", settings.private_key_path)
        return KeyPair(private_pem=_private_to_pem(private_key), public_pem=public_pem)

    if settings.public_key_path:
        logger.info("Loaded JWT verification key only, token issuance disabled")
        return KeyPair(
            private_pem=None,
            public_pem=Path(settings.public_key_path).read_text(encoding="utf-8"),
        )

    if is_local_development():
        logger.warning(
            "No JWT key configured, generating an ephemeral RSA key pair. "
            "Issued tokens become invalid on restart."
        )
        return generate_key_pair()

    raise RuntimeError(
        "JWT_PRIVATE_KEY_PATH or JWT_PRIVATE_KEY_PEM must be set outside development"
    )
