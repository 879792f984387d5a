"""GitHub API client for listing backup sources.

This module resolves the authenticated account, the organizations it belongs
to, and the repositories each of them owns, using the GitHub REST API.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

import requests
from typing_extensions import TypedDict

from . import __version__

logger = logging.getLogger(__name__)

USER = "USER"
ORG = "ORG"


class RemoteRepo(TypedDict):
    """A repository as reported by the listing API."""

    name: str
    ssh_url: str


class GitHubClient:
    """Client for the parts of the GitHub REST API a backup run needs.

    Authenticates with a token, taken from the ``GITHUB_TOKEN`` environment
    variable when none is passed explicitly.
    """

    API_URL = "https://api.github.com"
    PER_PAGE = 100

    def __init__(self, timeout: int = 30, token: Optional[str] = None):
        """Initialize the GitHub client.

        Args:
            timeout: Request timeout in seconds
            token: Optional GitHub token; required to list private repositories
        """
        self.timeout = timeout
        self.token = token or os.getenv("GITHUB_TOKEN")
        self.session = requests.Session()

        self.session.headers.update(
            {
                "User-Agent": f"github-repo-backup/{__version__}",
                "Accept": "application/vnd.github+json",
            }
        )

        if self.token:
            self.session.headers.update({"Authorization": f"token {self.token}"})
            logger.debug("GitHub token configured for private repository access")

    def _get(self, url: str, params: Optional[dict] = None) -> requests.Response:
        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response

    def _paginate(self, url: str, params: dict, limit: int) -> list[dict]:
        """Collect items across ``Link: rel="next"`` pages, up to ``limit``."""
        items: list[dict] = []
        next_url: Optional[str] = url
        next_params: Optional[dict] = {**params, "per_page": self.PER_PAGE}

        while next_url and len(items) < limit:
            response = self._get(next_url, next_params)
            page = response.json()
            if not isinstance(page, list):
                raise ValueError(f"Unexpected response from {next_url}: expected a list")
            items.extend(page)

            next_url = response.links.get("next", {}).get("url")
            # The next link already carries the query string
            next_params = None

        return items[:limit]

    def current_user(self) -> str:
        """Return the login of the authenticated account.

        Raises:
            requests.RequestException: If the request fails
            KeyError: If the response has no login
        """
        data = self._get(f"{self.API_URL}/user").json()
        return data["login"]

    def list_orgs(self) -> list[str]:
        """Return the logins of organizations the account belongs to, in API order."""
        orgs = self._paginate(f"{self.API_URL}/user/orgs", {}, limit=10_000)
        return [org["login"] for org in orgs]

    def list_repos(self, entity: str, scope: str, limit: int = 5000) -> list[RemoteRepo]:
        """List repositories owned by an entity.

        Args:
            entity: Account or organization login
            scope: ``USER`` for the authenticated account, ``ORG`` for an organization
            limit: Maximum number of repositories to return

        Returns:
            Repositories in API order, with their SSH clone URLs

        Raises:
            requests.RequestException: If a request fails
            ValueError: If the scope is unknown or the response is malformed
        """
        if scope == USER:
            # /user/repos includes private repositories, /users/{name}/repos does not
            url = f"{self.API_URL}/user/repos"
            params = {"affiliation": "owner"}
        elif scope == ORG:
            url = f"{self.API_URL}/orgs/{entity}/repos"
            params = {"type": "all"}
        else:
            raise ValueError(f"Unknown scope: {scope}")

        logger.debug(f"Listing repositories for {entity} ({scope}) from {url}")
        repos = self._paginate(url, params, limit)

        try:
            return [{"name": repo["name"], "ssh_url": repo["ssh_url"]} for repo in repos]
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed repository listing for {entity}: {e}") from e

    def test_connection(self) -> bool:
        """Test connection to the GitHub API.

        Returns:
            True if connection is successful, False otherwise
        """
        try:
            response = self.session.get(self.API_URL, timeout=self.timeout)
            return response.status_code == 200
        except requests.RequestException:
            return False

    def close(self) -> None:
        """Close the HTTP session.

        Should be called when done using the client to clean up resources.
        """
        self.session.close()

    def __enter__(self) -> GitHubClient:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
