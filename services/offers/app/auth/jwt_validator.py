"""
JWT validator with JWKS-based verification for Auth0 tokens
"""
import jwt
from jwt import PyJWKClient
import logging
from typing import Dict
from fastapi import HTTPException, status
from app.config import settings

logger = logging.getLogger(__name__)

# Custom claims are added by an Auth0 action under this namespace
CLAIM_NAMESPACE = "https://offers.local/"


class JWTValidator:
    def __init__(self):
        self.auth0_domain = settings.auth0_domain
        self.audience = settings.auth0_audience
        self.issuer = f"https://{self.auth0_domain}/"
        self.jwks_url = f"https://{self.auth0_domain}/.well-known/jwks.json"

        # Keys are fetched on first use and cached
        self.jwks_client = PyJWKClient(self.jwks_url, cache_keys=True, max_cached_keys=10)

    def verify_token(self, token: str) -> Dict:
        """
        Verify JWT token using JWKS.
        Returns decoded token payload if valid.
        """
        try:
            signing_key = self.jwks_client.get_signing_key_from_jwt(token)

            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self.audience if self.audience else None,
                issuer=self.issuer,
                options={
                    "verify_signature": True,
                    "verify_aud": bool(self.audience),
                    "verify_iss": True,
                    "verify_exp": True,
                }
            )
            return payload
        except jwt.ExpiredSignatureError:
            logger.warning("JWT token has expired")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired"
            )
        except jwt.PyJWKClientError as e:
            logger.error(f"Could not fetch signing key from {self.jwks_url}: {e}")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Authentication service unavailable"
            )
        except jwt.InvalidTokenError as e:
            logger.warning(f"JWT verification failed: {e}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials"
            )


jwt_validator = JWTValidator()
