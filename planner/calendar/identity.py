"""Google sign-in for the planner.

Identity is delegated to Google: the user is sent through the OAuth
consent screen, the returned ID token is verified, and the resulting
Identity is kept in the signed session cookie. Nothing about the user is
stored server side.
"""
import logging
import os
from collections.abc import Callable, MutableMapping

from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from google_auth_oauthlib.flow import Flow

from planner.core.config import Settings, settings
from planner.core.errors import AuthError
from planner.models import Identity

logger = logging.getLogger(__name__)

SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]

IDENTITY_KEY = "identity"
STATE_KEY = "oauth_state"
VERIFIER_KEY = "oauth_code_verifier"

IdentityListener = Callable[[MutableMapping, Identity | None], None]


def verify_id_token(token: str, client_id: str) -> dict:
    """Verify a Google ID token and return its claims."""
    return id_token.verify_oauth2_token(token, google_requests.Request(), client_id)


class GoogleIdentityProvider:
    """Sign users in and out with Google."""

    def __init__(
        self,
        config: Settings = settings,
        verifier: Callable[[str, str], dict] = verify_id_token,
    ):
        self.config = config
        self.verifier = verifier
        self._listeners: list[IdentityListener] = []

        # oauthlib refuses plain-http redirects unless told otherwise
        if config.oauth_redirect_uri.startswith("http://"):
            os.environ["OAUTHLIB_INSECURE_TRANSPORT"] = "1"

    @property
    def configured(self) -> bool:
        return bool(self.config.google_client_id and self.config.google_client_secret)

    def _build_flow(self, state: str | None = None, code_verifier: str | None = None) -> Flow:
        client_config = {
            "web": {
                "client_id": self.config.google_client_id,
                "client_secret": self.config.google_client_secret,
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": "https://oauth2.googleapis.com/token",
                "redirect_uris": [self.config.oauth_redirect_uri],
            }
        }
        flow = Flow.from_client_config(
            client_config,
            scopes=SCOPES,
            state=state,
            code_verifier=code_verifier,
            autogenerate_code_verifier=True,
        )
        flow.redirect_uri = self.config.oauth_redirect_uri
        return flow

    def on_identity_change(self, callback: IdentityListener) -> Callable[[], None]:
        """Subscribe to sign-in and sign-out. Returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, session: MutableMapping, identity: Identity | None) -> None:
        for listener in list(self._listeners):
            listener(session, identity)

    def current(self, session: MutableMapping) -> Identity | None:
        data = session.get(IDENTITY_KEY)
        if not data:
            return None
        try:
            return Identity(**data)
        except (TypeError, ValueError):
            logger.warning("Discarding unreadable identity in session")
            session.pop(IDENTITY_KEY, None)
            return None

    def authorization_url(self, session: MutableMapping) -> str:
        """Start sign-in. Returns the Google consent URL to redirect to."""
        if not self.configured:
            raise AuthError("Google sign-in is not configured")

        flow = self._build_flow()
        url, state = flow.authorization_url(prompt="select_account")
        session[STATE_KEY] = state
        # PKCE: the token exchange must present the verifier behind this challenge
        session[VERIFIER_KEY] = flow.code_verifier
        return url

    def sign_in(self, session: MutableMapping, authorization_response: str) -> Identity:
        """
        Finish sign-in from the OAuth callback URL.

        On any failure the session holds no identity and AuthError is raised.
        """
        state = session.pop(STATE_KEY, None)
        code_verifier = session.pop(VERIFIER_KEY, None)
        session.pop(IDENTITY_KEY, None)
        if not state:
            raise AuthError("Sign-in was not started from this browser")

        try:
            flow = self._build_flow(state=state, code_verifier=code_verifier)
            flow.fetch_token(authorization_response=authorization_response)
            token = flow.credentials.id_token
            if not token:
                raise AuthError("Google did not return an ID token")
            claims = self.verifier(token, self.config.google_client_id)
        except AuthError:
            raise
        except Exception as e:
            logger.error(f"Sign-in failed: {e}")
            raise AuthError("Sign-in failed") from e

        identity = self.identity_from_claims(claims)
        session[IDENTITY_KEY] = identity.model_dump()
        logger.info(f"Signed in {identity.uid}")
        self._notify(session, identity)
        return identity

    @staticmethod
    def identity_from_claims(claims: dict) -> Identity:
        uid = claims.get("sub")
        if not uid:
            raise AuthError("ID token has no subject")
        return Identity(
            uid=uid,
            email=claims.get("email"),
            display_name=claims.get("name"),
        )

    def sign_out(self, session: MutableMapping) -> None:
        identity = self.current(session)
        session.pop(IDENTITY_KEY, None)
        session.pop(STATE_KEY, None)
        session.pop(VERIFIER_KEY, None)
        if identity:
            logger.info(f"Signed out {identity.uid}")
        self._notify(session, None)


identity_provider = GoogleIdentityProvider()
