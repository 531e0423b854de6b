"""
Authentication collaborators: token service and password hasher.

The pipeline only depends on the abstract interfaces. The shipped
implementations use PyJWT for tokens and PBKDF2-SHA256 for passwords.
"""

import base64
import hashlib
import hmac
import logging
import secrets
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

import jwt

from .exceptions import TokenExpiredError, TokenInvalidError

logger = logging.getLogger(__name__)


class TokenService(ABC):
    """Issues and verifies identity tokens."""

    @abstractmethod
    def issue(self, claims: Dict[str, Any]) -> str:
        """Return a signed token carrying ``claims``."""
        pass

    @abstractmethod
    def verify(self, token: str) -> Dict[str, Any]:
        """Return the claims of a valid token.

        Raises:
            TokenExpiredError: If the token is authentic but past its expiry
            TokenInvalidError: If the token is malformed or its signature is wrong
        """
        pass


class JWTTokenService(TokenService):
    """HMAC-signed JSON Web Tokens with ``iat``/``exp`` claims."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        ttl_seconds: int = 3600,
        leeway: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        if not secret:
            raise ValueError("JWTTokenService: secret must not be empty")
        self.secret = secret
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds
        self.leeway = leeway
        self.clock = clock

    def issue(self, claims: Dict[str, Any], ttl_seconds: Optional[int] = None) -> str:
        now = int(self.clock())
        payload = dict(claims)
        if "sub" in payload:
            payload["sub"] = str(payload["sub"])
        payload.setdefault("iat", now)
        payload.setdefault("exp", now + (self.ttl_seconds if ttl_seconds is None else ttl_seconds))
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Dict[str, Any]:
        # Signature and structure are checked by PyJWT; time claims against self.clock
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={
                    "require": ["exp"],
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except jwt.InvalidTokenError as e:
            logger.debug(f"Rejected token: {e}")
            raise TokenInvalidError()

        now = self.clock()
        exp = claims.get("exp")
        nbf = claims.get("nbf")
        if not isinstance(exp, (int, float)) or isinstance(exp, bool):
            raise TokenInvalidError()
        if exp <= now - self.leeway:
            raise TokenExpiredError()
        if nbf is not None and (not isinstance(nbf, (int, float)) or nbf > now + self.leeway):
            raise TokenInvalidError()
        return claims


class PasswordHasher(ABC):
    """Hashes and verifies passwords."""

    @abstractmethod
    def hash(self, plaintext: str) -> str:
        pass

    @abstractmethod
    def verify(self, plaintext: str, digest: str) -> bool:
        pass


class Pbkdf2PasswordHasher(PasswordHasher):
    """PBKDF2-HMAC-SHA256 with a random salt.

    Digests look like ``pbkdf2_sha256$<iterations>$<salt>$<hash>`` with the
    salt and hash base64-encoded, so the iteration count can be raised later
    without invalidating stored digests.
    """

    ALGORITHM = "pbkdf2_sha256"

    def __init__(self, iterations: int = 260_000, salt_bytes: int = 16):
        self.iterations = iterations
        self.salt_bytes = salt_bytes

    def hash(self, plaintext: str) -> str:
        salt = secrets.token_bytes(self.salt_bytes)
        derived = self._derive(plaintext, salt, self.iterations)
        return "$".join([
            self.ALGORITHM,
            str(self.iterations),
            base64.b64encode(salt).decode("ascii"),
            base64.b64encode(derived).decode("ascii"),
        ])

    def verify(self, plaintext: str, digest: str) -> bool:
        try:
            algorithm, iterations, salt_b64, hash_b64 = digest.split("$")
            if algorithm != self.ALGORITHM:
                return False
            salt = base64.b64decode(salt_b64)
            expected = base64.b64decode(hash_b64)
            actual = self._derive(plaintext, salt, int(iterations))
        except (ValueError, TypeError):
            return False
        return hmac.compare_digest(expected, actual)

    @staticmethod
    def _derive(plaintext: str, salt: bytes, iterations: int) -> bytes:
        return hashlib.pbkdf2_hmac("sha256", plaintext.encode("utf-8"), salt, iterations)
