import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict

import httpx
import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt.exceptions import InvalidTokenError, PyJWTError

from dealcase.errors import CollaboratorError

JWKS_PATH = "/.well-known/jwks.json"
ALLOWED_ALGORITHMS = ["ES256", "RS256"]

security = HTTPBearer(auto_error=False)


async def fetch_remote_jwks(url: str) -> Dict[str, Any]:
    async with httpx.AsyncClient(timeout=10) as client:
        response = await client.get(url)
        response.raise_for_status()
        return response.json()


class JwksCache:
    """Signing keys of the identity provider, refetched once ``ttl_seconds`` have passed.

    Built once at startup and shared through ``app.state``; tests pass their
    own ``fetch_jwks`` and ``clock``.
    """

    def __init__(
        self,
        fetch_jwks: Callable[[], Awaitable[Dict[str, Any]]],
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch_jwks = fetch_jwks
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._keys: Dict[str | None, jwt.PyJWK] | None = None
        self._expires_at = 0.0

    @property
    def is_fresh(self) -> bool:
        return self._keys is not None and self._clock() < self._expires_at

    async def refresh(self) -> None:
        jwks = await self._fetch_jwks()
        keys: Dict[str | None, jwt.PyJWK] = {}
        for key_data in jwks.get("keys", []):
            try:
                keys[key_data.get("kid")] = jwt.PyJWK(key_data)
            except PyJWTError as e:
                logging.warning(f"Skipping unusable JWK {key_data.get('kid')}: {e}")
        self._keys = keys
        self._expires_at = self._clock() + self.ttl_seconds
        logging.info(f"Loaded {len(keys)} signing keys")

    async def get_signing_key(self, kid: str | None) -> jwt.PyJWK:
        """Return the key for ``kid``. An unknown kid forces one refetch (key rotation)."""
        refreshed = False
        if not self.is_fresh:
            await self.refresh()
            refreshed = True

        key = self._keys.get(kid)
        if key is None and not refreshed:
            await self.refresh()
            key = self._keys.get(kid)
        if key is None:
            raise InvalidTokenError(f"No signing key found for kid {kid}")
        return key


@dataclass
class VerificationResult:
    valid: bool
    principal_id: str = ""
    email: str | None = None
    wallet_address: str | None = None
    error: str | None = None


class Web3AuthVerifier:
    def __init__(self, jwks_cache: JwksCache, issuer: str, audience: str | None = None):
        self.jwks_cache = jwks_cache
        self.issuer = issuer
        self.audience = audience

    async def verify_principal(self, credential: str | None) -> VerificationResult:
        """Verify a Web3Auth JWT and extract the wallet that signed in

        Args:
            credential (str | None): Authorization header value, with or without "Bearer "

        Raises:
            CollaboratorError: The key set could not be fetched

        Returns:
            VerificationResult: principal_id is the lowercase wallet address,
                or ``web3auth:<sub>`` for accounts without one
        """
        if not credential:
            return VerificationResult(valid=False, error="No authorization header")

        token = re.sub(r"^Bearer\s+", "", credential, flags=re.IGNORECASE)
        try:
            header = jwt.get_unverified_header(token)
            key = await self.jwks_cache.get_signing_key(header.get("kid"))
            claims = jwt.decode(
                token,
                key.key,
                algorithms=ALLOWED_ALGORITHMS,
                issuer=self.issuer,
                audience=self.audience,
                options={"verify_aud": self.audience is not None},
            )
        except httpx.HTTPError as e:
            logging.error(f"Failed to fetch signing keys: {e}")
            raise CollaboratorError("Identity key set unavailable") from e
        except PyJWTError as e:
            logging.warning(f"Web3Auth token verification failed: {e}")
            return VerificationResult(valid=False, error=str(e))

        wallet_address = claims.get("wallet_address") or claims.get("public_address")
        if wallet_address:
            principal_id = wallet_address.lower()
        else:
            principal_id = f"web3auth:{claims.get('sub')}"

        return VerificationResult(
            valid=True,
            principal_id=principal_id,
            email=claims.get("email"),
            wallet_address=wallet_address.lower() if wallet_address else None,
        )


def get_verifier(request: Request) -> Web3AuthVerifier:
    return request.app.state.verifier


async def require_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    verifier: Web3AuthVerifier = Depends(get_verifier),
) -> str:
    """Authenticated principal or 401."""
    result = await verifier.verify_principal(credentials.credentials if credentials else None)
    if not result.valid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Unauthorized", "details": result.error},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return result.principal_id


async def optional_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    verifier: Web3AuthVerifier = Depends(get_verifier),
) -> str | None:
    """Authenticated principal, or None for anonymous and invalid credentials."""
    if credentials is None:
        return None
    result = await verifier.verify_principal(credentials.credentials)
    return result.principal_id if result.valid else None
