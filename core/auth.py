import hmac
import logging
from typing import Dict, Optional

logger = logging.getLogger("EventKeeper.Auth")

# Stand-in account table. Plaintext on purpose: this is not a security boundary.
DEFAULT_ACCOUNTS = {
    "user1": "pass123",
    "user2": "pass456"
}


class CredentialStore:
    """Anything that can turn a username/password pair into a user id."""

    def verify(self, username: str, password: str) -> Optional[str]:
        raise NotImplementedError


class StaticCredentialStore(CredentialStore):
    def __init__(self, accounts: Optional[Dict[str, str]] = None):
        self.accounts = dict(DEFAULT_ACCOUNTS if accounts is None else accounts)

    def verify(self, username, password):
        stored = self.accounts.get(username)
        if stored is None or not isinstance(password, str):
            return None
        if hmac.compare_digest(stored.encode("utf-8"), password.encode("utf-8")):
            return username
        return None


class Authenticator:
    def __init__(self, credential_store: Optional[CredentialStore] = None):
        self.credential_store = credential_store or StaticCredentialStore()

    async def authenticate(self, username: str, password: str) -> Optional[str]:
        """Returns the user id for a valid pair, None otherwise. Never raises."""
        try:
            user_id = self.credential_store.verify(username, password)
        except Exception as e:
            logger.error(f"Credential lookup failed for {username!r}: {e}")
            return None
        if user_id is None:
            logger.info(f"Authentication failed for {username!r}")
        return user_id


authenticator = Authenticator()


async def authenticate_user(username, password):
    return await authenticator.authenticate(username, password)
