"""Redis key templates and TTL constants.

Centralized management of all Redis keys used in the application to prevent
conflicts and make maintenance easier.
"""


class RedisKeys:
    """Redis key templates and helper methods."""

    # ============================================================================
    # OAuth authorization flow
    # ============================================================================

    # Pending authorization request for CSRF protection
    # Format: oauth_state:{state}
    # TTL: 5 minutes
    OAUTH_STATE_TTL = 300

    @staticmethod
    def oauth_state(state: str) -> str:
        """
        Get the key marking an authorization request as pending.

        Args:
            state: Random state token generated during authorization.

        Returns:
            Redis key string.
        """
        return f"oauth_state:{state}"

    # Nonce bound into the ID token, keyed by state
    # Format: oauth_nonce:{state}
    @staticmethod
    def oauth_nonce(state: str) -> str:
        return f"oauth_nonce:{state}"

    # PKCE code verifier, keyed by state
    # Format: oauth_verifier:{state}
    @staticmethod
    def oauth_code_verifier(state: str) -> str:
        return f"oauth_verifier:{state}"

    # Fixed-window rate limit counter
    # Format: auth_rate_limit:{action}:{client_id}
    @staticmethod
    def auth_rate_limit(action: str, client_id: str) -> str:
        """
        Get the rate-limit counter key for an endpoint and client.

        Args:
            action: Endpoint action (e.g. 'authorize', 'callback').
            client_id: Client identifier, usually an IP address.

        Returns:
            Redis key string.
        """
        return f"auth_rate_limit:{action}:{client_id}"
