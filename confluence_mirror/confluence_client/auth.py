"""Credential loading for the mirror's Confluence connection.

The URL, user and API token come from the process environment. A .env file
in the working directory (or an explicit path) is merged in first by
python-dotenv, without overriding variables that are already set.
"""

import os
from typing import NamedTuple, Optional

from dotenv import load_dotenv

from .errors import InvalidCredentialsError

URL_VARIABLE = 'CONFLUENCE_URL'
USER_VARIABLE = 'CONFLUENCE_USER'
TOKEN_VARIABLE = 'CONFLUENCE_API_TOKEN'


class Credentials(NamedTuple):
    """Connection settings for one Confluence site."""
    url: str
    user: str
    api_token: str


class Authenticator:
    """Reads CONFLUENCE_URL, CONFLUENCE_USER and CONFLUENCE_API_TOKEN.

    Example:
        >>> creds = Authenticator().get_credentials()
        >>> creds.url
        'https://team.atlassian.net/wiki'
    """

    def __init__(self, dotenv_path: Optional[str] = None):
        load_dotenv(dotenv_path)

    def get_credentials(self) -> Credentials:
        """Return the configured credentials.

        The URL loses any trailing slash so API paths can be appended.

        Raises:
            InvalidCredentialsError: If a variable is unset or empty
        """
        url = os.getenv(URL_VARIABLE)
        user = os.getenv(USER_VARIABLE)
        api_token = os.getenv(TOKEN_VARIABLE)

        if not url or not user or not api_token:
            raise InvalidCredentialsError(user=user or "unknown", endpoint=url or "unknown")

        return Credentials(url=url.rstrip('/'), user=user, api_token=api_token)
