"""Identity Resolver Port (Interface)."""

from abc import ABC, abstractmethod


class IdentityResolverPort(ABC):
    """Port (interface) for resolving bearer tokens to user ids."""

    @abstractmethod
    async def verify(self, token: str) -> str:
        """
        Resolve an access token to the id of the user it was issued to.

        Raises:
            AuthenticationError: If the token is invalid or expired
        """
        pass
