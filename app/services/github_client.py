"""
GitHub REST v3 client.

Thin wrapper over requests with a per-call timeout. Listing helpers degrade to
empty results on failure; profile lookups raise GitHubAPIError so the caller
can decide whether the whole operation is still meaningful.
"""

import logging
from typing import List, Optional

import requests

from app.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

REPOS_PER_PAGE = 100
MAX_REPO_PAGES = 3


class GitHubAPIError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GitHubClient:
    def __init__(self, access_token: str, base_url: str = None, timeout: int = None):
        self.base_url = (base_url or settings.github_api_url).rstrip("/")
        self.timeout = timeout or settings.github_timeout_seconds
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github.v3+json",
        })

    def _get(self, path: str, params: dict = None) -> requests.Response:
        return self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)

    def get_authenticated_user(self) -> dict:
        """GET /user - validates the token and returns the owner's profile."""
        try:
            response = self._get("/user")
        except requests.RequestException as e:
            raise GitHubAPIError(f"GitHub request failed: {e}") from e
        if not response.ok:
            raise GitHubAPIError(f"Invalid GitHub token: {response.status_code}", response.status_code)
        return response.json()

    def get_user(self, username: str) -> dict:
        """GET /users/{username}"""
        try:
            response = self._get(f"/users/{username}")
        except requests.RequestException as e:
            raise GitHubAPIError(f"GitHub request failed: {e}") from e
        if not response.ok:
            raise GitHubAPIError(f"Failed to fetch user data: {response.status_code}", response.status_code)
        return response.json()

    def list_repositories(self, username: str) -> List[dict]:
        """
        Up to 300 repositories (3 pages x 100), most recently updated first.
        Stops early at an empty, short or failed page.
        """
        repos = []
        try:
            for page in range(1, MAX_REPO_PAGES + 1):
                response = self._get(
                    f"/users/{username}/repos",
                    params={"sort": "updated", "per_page": REPOS_PER_PAGE, "page": page}
                )
                if not response.ok:
                    logger.error(f"Failed to fetch repos page {page}: {response.status_code}")
                    break

                page_repos = response.json()
                if not page_repos:
                    break
                repos.extend(page_repos)
                if len(page_repos) < REPOS_PER_PAGE:
                    break
        except requests.RequestException as e:
            logger.error(f"Error fetching GitHub repositories for {username}: {e}")
            return []

        logger.info(f"Fetched {len(repos)} repositories for {username}")
        return repos

    def get_repository_languages(self, owner: str, repo: str) -> dict:
        """Language -> byte count for one repository; {} on any failure."""
        try:
            response = self._get(f"/repos/{owner}/{repo}/languages")
        except requests.RequestException as e:
            logger.error(f"Error fetching languages for {owner}/{repo}: {e}")
            return {}
        if not response.ok:
            return {}
        return response.json()
