"""Identity of the signed-in user.

Identities are never persisted; they live in the signed session cookie
for as long as the session does.
"""

from sqlmodel import SQLModel


class Identity(SQLModel):
    """The user behind the current session.

    Attributes:
        uid: Stable identifier from the identity provider (Google ``sub``).
            Scopes every event store operation.
        email: Verified email address, if the provider returned one.
        display_name: Human-readable name, if available.
    """
    uid: str
    email: str | None = None
    display_name: str | None = None

    @property
    def greeting_name(self) -> str:
        return self.display_name or self.email or self.uid
