"""
Rice Notes Backend — Token Service
====================================

What:  Turns a Google authorization code into a signed session token, and
       validates that token on every authenticated request.
How:   Delegates the provider round trips to an OAuthProvider, enforces the
       institutional email domain, and signs/verifies HS256 JWTs with
       python-jose.
Who:   Built once per app in main.py; used by routes/auth.py and by the
       get_current_principal dependency.

Sign-in flow:
    Unauthenticated ──build_authorization_url──▶ AwaitingProviderCode
        ──callback(code)──▶ CodeReceived ──exchange + profile + domain──▶
        IdentityVerified ──issue_token──▶ TokenIssued

    Any failure leaves the caller unauthenticated; nothing is persisted.

Token claims:
    email, name, picture, iat, exp (= iat + ttl), iss

Verification:
    1. Header/claims must decode           → else MalformedToken
    2. Header alg must be HS256            → else SignatureInvalid
    3. Signature and issuer must match     → else SignatureInvalid
    4. Library expiry check, then an independent `now > exp` check against
       the injected clock                  → else TokenExpired
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Tuple

from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError

from ricenotes.config import Settings
from ricenotes.exceptions import (
    DomainRejected,
    MalformedToken,
    SignatureInvalid,
    SigningError,
    TokenExpired,
)
from ricenotes.services.oauth_provider import GoogleOAuthProvider, IdentityClaims, OAuthProvider

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
DEFAULT_ISSUER = "rice-notes"
DEFAULT_TTL = timedelta(hours=24)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SessionClaims:
    """Verified contents of a session token; the request principal."""
    email: str
    name: str
    picture: str
    issued_at: datetime
    expires_at: datetime
    issuer: str


def email_in_domain(email: str, allowed_domain: str) -> bool:
    """
    True when the email's domain equals `allowed_domain` or is a subdomain of it.

    Case-insensitive. "a@rice.edu" and "a@cs.rice.edu" pass for "rice.edu";
    "a@notrice.edu" and "a@rice.edu.evil.com" do not.
    """
    if not email or "@" not in email:
        return False
    domain = email.rsplit("@", 1)[1].strip().lower()
    allowed = allowed_domain.lower()
    return domain == allowed or domain.endswith("." + allowed)


class TokenService:
    def __init__(
        self,
        provider: OAuthProvider,
        secret: str,
        allowed_domain: str = "rice.edu",
        issuer: str = DEFAULT_ISSUER,
        ttl: timedelta = DEFAULT_TTL,
        algorithm: str = JWT_ALGORITHM,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.provider = provider
        self._secret = secret
        self.allowed_domain = allowed_domain.lower()
        self.issuer = issuer
        self.ttl = ttl
        self.algorithm = algorithm
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        provider = GoogleOAuthProvider(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            redirect_url=settings.google_redirect_url,
            timeout=settings.oauth_http_timeout,
            retry_attempts=settings.retry_max_attempts,
            retry_min_wait=settings.retry_min_wait,
            retry_max_wait=settings.retry_max_wait,
        )
        return cls(
            provider=provider,
            secret=settings.jwt_secret,
            allowed_domain=settings.allowed_email_domain,
            issuer=settings.jwt_issuer,
            ttl=timedelta(hours=settings.jwt_ttl_hours),
        )

    def build_authorization_url(self, state: str = "") -> Tuple[str, str]:
        """
        Consent URL for `state`, generating a random state when none is given.

        Returns:
            (url, state) so the caller can bind the state to the browser.
        """
        if not state:
            state = secrets.token_hex(16)
        return self.provider.authorization_url(state), state

    async def exchange_code(self, code: str) -> IdentityClaims:
        """
        Exchange the code, load the profile and apply the domain policy.

        Raises:
            CodeExchangeError: Provider rejected the code
            ProfileFetchError: Profile lookup failed
            DomainRejected:    Email outside the allowed domain (the provider's
                               verified flag does not rescue it)
        """
        access_token = await self.provider.exchange_code(code)
        identity = await self.provider.fetch_profile(access_token)

        if not email_in_domain(identity.email, self.allowed_domain):
            logger.warning("Sign-in rejected for out-of-domain email")
            raise DomainRejected(
                self.allowed_domain,
                context={"email": identity.email, "verified": identity.email_verified},
            )

        # In-domain addresses are trusted on the domain alone; Google verifies
        # ownership of Workspace accounts.
        return identity

    def issue_token(self, identity: IdentityClaims) -> str:
        if not self._secret:
            raise SigningError(context={"reason": "JWT secret is not configured"})

        issued_at = self._clock()
        expires_at = issued_at + self.ttl
        payload: Dict[str, Any] = {
            "email": identity.email,
            "name": identity.name,
            "picture": identity.picture,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "iss": self.issuer,
        }
        try:
            return jwt.encode(payload, self._secret, algorithm=self.algorithm)
        except JWTError as e:
            raise SigningError(context={"error": str(e)}) from e

    def verify_token(self, token: str) -> SessionClaims:
        if not token:
            raise MalformedToken(context={"reason": "empty token"})

        try:
            header = jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as e:
            raise MalformedToken(context={"error": str(e)}) from e

        if header.get("alg") != self.algorithm:
            raise SignatureInvalid(context={"alg": header.get("alg")})
        if not self._secret:
            raise SignatureInvalid(context={"reason": "JWT secret is not configured"})

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
            )
        except ExpiredSignatureError as e:
            raise TokenExpired() from e
        except JWTError as e:
            raise SignatureInvalid(context={"error": str(e)}) from e

        exp = payload.get("exp")
        iat = payload.get("iat")
        email = payload.get("email")
        if not isinstance(exp, int) or not isinstance(iat, int) or not email:
            raise MalformedToken(context={"reason": "missing required claims"})

        if self._clock().timestamp() > exp:
            raise TokenExpired(context={"exp": exp})

        return SessionClaims(
            email=email,
            name=payload.get("name", ""),
            picture=payload.get("picture", ""),
            issued_at=datetime.fromtimestamp(iat, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
            issuer=payload.get("iss", ""),
        )

    async def authenticate(self, code: str) -> Tuple[SessionClaims, str]:
        """
        Full callback flow: code → verified identity → signed session token.

        Returns:
            (claims, token), where claims are read back from the token.
        """
        identity = await self.exchange_code(code)
        token = self.issue_token(identity)
        claims = self.verify_token(token)
        logger.info("Successful authentication for %s", claims.email)
        return claims, token
