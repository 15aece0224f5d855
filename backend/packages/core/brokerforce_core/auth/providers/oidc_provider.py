"""
OpenID Connect authentication provider.

Implements the authorization-code flow with PKCE against any OIDC identity
provider. Defaults target Google sign-in, whose token and key endpoints live
on googleapis.com rather than on the issuer host.
"""

import base64
import hashlib
from secrets import token_urlsafe
from time import monotonic, time
from typing import Any, cast
from urllib.parse import urlencode, urlparse

import httpx
from jose import jwk, jwt
from jose.constants import ALGORITHMS
from jose.exceptions import ExpiredSignatureError, JWTClaimsError, JWTError

from brokerforce_core import get_logger
from brokerforce_core.config import GOOGLE_ISSUER

from .base import AuthProvider, AuthResult

logger = get_logger(__name__)

# Google publishes its endpoints on these hosts and sometimes omits the scheme in `iss`.
GOOGLE_ENDPOINT_HOSTS = frozenset(
    {
        "accounts.google.com",
        "oauth2.googleapis.com",
        "www.googleapis.com",
        "openidconnect.googleapis.com",
    }
)
GOOGLE_ISSUER_ALIASES = ("accounts.google.com",)

# Tolerated clock skew for iat/nbf checks
CLOCK_SKEW_SECONDS = 60


class OIDCProvider(AuthProvider):
    """
    OpenID Connect provider.

    Verifies ID tokens against the provider's published JWKS and turns the
    verified claims into an ``AuthResult``.
    """

    ALLOWED_SIGNING_ALGORITHMS = frozenset(
        {
            ALGORITHMS.RS256,
            ALGORITHMS.RS384,
            ALGORITHMS.RS512,
            ALGORITHMS.ES256,
            ALGORITHMS.ES384,
            ALGORITHMS.ES512,
        }
    )

    def __init__(self, provider_id: str, config: dict[str, Any]) -> None:
        """
        Initialize OIDC provider.

        Args:
            provider_id: Provider identifier (e.g. 'google').
            config: Configuration dictionary with:
                - client_id: OAuth client ID
                - client_secret: OAuth client secret
                - issuer: issuer URL (default: Google)
                - scopes: list of scopes (default: openid, email, profile)
                - discovery_url: defaults to {issuer}/.well-known/openid-configuration
                - redirect_uri: OAuth callback URL
                - trusted_hosts: extra hosts allowed for discovered endpoints
        """
        super().__init__(provider_id, config)
        self.client_id = config["client_id"]
        self.client_secret = config["client_secret"]
        self.issuer = str(config.get("issuer") or GOOGLE_ISSUER).rstrip("/")
        self.scopes = list(config.get("scopes") or ["openid", "email", "profile"])
        self.discovery_url = config.get("discovery_url") or (
            f"{self.issuer}/.well-known/openid-configuration"
        )
        self.jwks_cache_ttl_seconds = int(config.get("jwks_cache_ttl_seconds", 86400))

        issuer_host = urlparse(self.issuer).netloc.lower()
        self.trusted_hosts = {issuer_host, *(h.lower() for h in config.get("trusted_hosts", ()))}
        self.accepted_issuers: tuple[str, ...] = (self.issuer,)
        if self.issuer == GOOGLE_ISSUER:
            self.trusted_hosts |= GOOGLE_ENDPOINT_HOSTS
            self.accepted_issuers += GOOGLE_ISSUER_ALIASES

        self._oidc_config: dict[str, Any] | None = None
        self._jwks: dict[str, Any] | None = None
        self._jwks_cached_at: float | None = None
        self._http_client: httpx.AsyncClient | None = None

        self._require_https(self.issuer, "issuer")
        self._require_trusted_endpoint(self.discovery_url, "discovery_url")

    # ------------------------------------------------------------------
    # URL safety
    # ------------------------------------------------------------------

    @staticmethod
    def _redact_url(url: str) -> str:
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            return "<invalid-url>"
        return f"{parsed.scheme}://{parsed.netloc}{parsed.path}"

    @staticmethod
    def _require_https(url: str, name: str) -> None:
        parsed = urlparse(url)
        if parsed.scheme.lower() != "https":
            raise ValueError(f"{name} must use HTTPS")
        if not parsed.netloc:
            raise ValueError(f"{name} must be an absolute URL")

    def _require_trusted_endpoint(self, url: str, name: str) -> None:
        self._require_https(url, name)
        if urlparse(url).netloc.lower() not in self.trusted_hosts:
            raise ValueError(f"{name} is not hosted by the identity provider")

    def _check_discovery_document(self, document: dict[str, Any]) -> None:
        required = ("authorization_endpoint", "token_endpoint", "jwks_uri")
        missing = [field for field in required if not document.get(field)]
        if missing:
            raise ValueError(f"OIDC config missing required fields: {', '.join(missing)}")
        for field in required:
            self._require_trusted_endpoint(str(document[field]), field)

    @staticmethod
    def _json_object(response: httpx.Response, context: str) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise ValueError(f"Invalid JSON in {context}") from e
        if not isinstance(payload, dict):
            raise ValueError(f"Invalid {context}: expected JSON object")
        return cast(dict[str, Any], payload)

    # ------------------------------------------------------------------
    # Flow helpers
    # ------------------------------------------------------------------

    @staticmethod
    def generate_pkce_pair() -> tuple[str, str]:
        """
        Generate a PKCE verifier and its S256 challenge.

        Returns:
            Tuple of (code_verifier, code_challenge).
        """
        verifier = token_urlsafe(32)
        digest = hashlib.sha256(verifier.encode("utf-8")).digest()
        challenge = base64.urlsafe_b64encode(digest).decode("utf-8").rstrip("=")
        return verifier, challenge

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=10.0)
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def authenticate(self, credentials: dict[str, Any]) -> AuthResult:
        """
        Exchange an authorization code for a verified identity.

        Args:
            credentials: Dictionary containing:
                - code: authorization code from the callback
                - redirect_uri: callback URL used in the authorization request
                - nonce: nonce sent in the authorization request
                - code_verifier: PKCE verifier matching the challenge

        Returns:
            AuthResult built from the verified ID token claims.

        Raises:
            ValueError: If the exchange or verification fails.
        """
        code = credentials.get("code")
        redirect_uri = credentials.get("redirect_uri")
        nonce = credentials.get("nonce")
        code_verifier = credentials.get("code_verifier")

        if not code or not redirect_uri:
            raise ValueError("Authorization code and redirect_uri are required")
        if not nonce:
            raise ValueError("Nonce is required for token verification")
        if not code_verifier:
            raise ValueError("PKCE code_verifier is required")

        oidc_config = await self._get_oidc_config()
        client = await self._get_http_client()
        response = await client.post(
            oidc_config["token_endpoint"],
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code_verifier": code_verifier,
            },
        )
        if response.status_code != 200:
            raise ValueError(f"Token exchange failed (status={response.status_code})")

        tokens = self._json_object(response, "token response")
        if "id_token" not in tokens:
            raise ValueError("Token response missing id_token")
        if str(tokens.get("token_type", "")).lower() != "bearer":
            raise ValueError("Unsupported token_type in token response")

        claims = await self._verify_id_token(
            tokens["id_token"], oidc_config, nonce, tokens.get("access_token")
        )

        logger.info(
            "[OIDC] identity verified",
            extra={"provider": self.provider_id, "sub": claims.get("sub")},
        )

        return {
            "user_info": claims,
            "provider_user_id": str(claims["sub"]),
            "email": claims.get("email") or None,
            "name": claims.get("name") or None,
            "avatar_url": claims.get("picture") or None,
            "email_verified": claims.get("email_verified") in (True, "true"),
            "metadata": {"tokens": tokens},
        }

    async def validate_config(self) -> bool:
        if not self.client_id or not self.client_secret:
            raise ValueError("client_id and client_secret are required")
        await self.prepare()
        return True

    async def prepare(self) -> None:
        await self._get_oidc_config()

    def get_authorization_url(
        self,
        state: str,
        redirect_uri: str,
        nonce: str | None = None,
        code_challenge: str | None = None,
    ) -> str | None:
        """
        Build the provider authorization URL.

        ``validate_config()`` or ``prepare()`` must have been awaited first so the
        discovery document is loaded.

        Raises:
            ValueError: If discovery metadata, nonce or PKCE challenge is missing.
        """
        if not self._oidc_config:
            raise ValueError("OIDC config not loaded - call prepare() first")
        if not nonce:
            raise ValueError("Nonce is required for OIDC authorization")
        if not code_challenge:
            raise ValueError("PKCE code_challenge is required for OIDC authorization")

        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "state": state,
            "nonce": nonce,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
            "prompt": "select_account",
        }
        return f"{self._oidc_config['authorization_endpoint']}?{urlencode(params)}"

    async def _get_oidc_config(self) -> dict[str, Any]:
        """
        Fetch and cache the discovery document.

        Raises:
            ValueError: If the discovery endpoint fails or is incomplete.
        """
        if self._oidc_config is not None:
            return self._oidc_config

        client = await self._get_http_client()
        response = await client.get(self.discovery_url)
        if response.status_code != 200:
            raise ValueError(
                f"Failed to fetch OIDC configuration from {self._redact_url(self.discovery_url)}"
            )

        document = self._json_object(response, "OIDC discovery response")
        self._check_discovery_document(document)
        self._oidc_config = document
        return document

    async def _verify_id_token(
        self,
        id_token: str,
        oidc_config: dict[str, Any],
        nonce: str,
        access_token: str | None = None,
    ) -> dict[str, Any]:
        """
        Verify the ID token signature and claims.

        Checks signature (JWKS), audience, issuer, expiry, iat/nbf with clock
        skew, and the nonce from the authorization request.

        Returns:
            Verified claims.

        Raises:
            ValueError: If any check fails.
        """
        try:
            header = jwt.get_unverified_header(id_token)
            kid = header.get("kid")
            if not kid:
                raise ValueError("ID token missing 'kid' in header")

            header_alg = header.get("alg")
            if header_alg and header_alg not in self.ALLOWED_SIGNING_ALGORITHMS:
                raise ValueError("ID token uses an unsupported signing algorithm")

            jwks = await self._get_jwks(oidc_config)
            signing_key = next(
                (key for key in jwks.get("keys", []) if key.get("kid") == kid), None
            )
            if signing_key is None:
                raise ValueError(f"No matching key found for kid: {kid}")

            key_alg = signing_key.get("alg") or header_alg
            if not key_alg or key_alg not in self.ALLOWED_SIGNING_ALGORITHMS:
                raise ValueError("JWKS key uses an unsupported signing algorithm")
            if header_alg and key_alg != header_alg:
                raise ValueError("ID token header algorithm does not match JWKS key algorithm")

            claims = jwt.decode(
                id_token,
                jwk.construct(signing_key),
                algorithms=[key_alg],
                audience=self.client_id,
                issuer=self.accepted_issuers,
                access_token=access_token,
                options={"require_exp": True, "require_iat": True},
            )

            if claims.get("nonce") != nonce:
                raise ValueError("Nonce mismatch - possible replay attack")

            now = time()
            iat = claims.get("iat")
            if iat and iat > now + CLOCK_SKEW_SECONDS:
                raise ValueError("Token issued in the future")
            nbf = claims.get("nbf")
            if nbf and now < nbf - CLOCK_SKEW_SECONDS:
                raise ValueError("Token not yet valid (nbf)")
            if not claims.get("sub"):
                raise ValueError("ID token missing subject")

            return claims

        except ExpiredSignatureError as e:
            raise ValueError("ID token has expired") from e
        except ValueError:
            raise
        except JWTClaimsError as e:
            raise ValueError("ID token claims validation failed") from e
        except JWTError as e:
            raise ValueError("ID token verification failed") from e

    async def _get_jwks(self, oidc_config: dict[str, Any]) -> dict[str, Any]:
        """
        Fetch the provider's signing keys, cached for ``jwks_cache_ttl_seconds``.

        Raises:
            ValueError: If the JWKS endpoint fails.
        """
        if (
            self._jwks is not None
            and self._jwks_cached_at is not None
            and monotonic() - self._jwks_cached_at <= self.jwks_cache_ttl_seconds
        ):
            return self._jwks

        jwks_uri = str(oidc_config.get("jwks_uri") or "")
        if not jwks_uri:
            raise ValueError("OIDC config missing 'jwks_uri'")
        self._require_trusted_endpoint(jwks_uri, "jwks_uri")

        client = await self._get_http_client()
        response = await client.get(jwks_uri)
        if response.status_code != 200:
            raise ValueError(f"Failed to fetch JWKS from {self._redact_url(jwks_uri)}")

        jwks = self._json_object(response, "JWKS response")
        self._jwks = jwks
        self._jwks_cached_at = monotonic()

        logger.debug("[OIDC] JWKS fetched", extra={"num_keys": len(jwks.get("keys", []))})
        return jwks
