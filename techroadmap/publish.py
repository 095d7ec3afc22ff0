from __future__ import annotations

"""
Publishing rendered roadmaps to GitHub Pages.

Files are written through the GitHub contents API: a GET on the path
tells whether the file exists (and gives its blob sha, required to
overwrite it), then a PUT uploads the base64 content.  The public URL
is derived from the Pages convention ``https://<user>.github.io/<repo>/``.
"""

import base64
from typing import Dict, List, Optional

import httpx
from loguru import logger

from .config import (
    GITHUB_API_URL,
    GITHUB_BRANCH,
    GITHUB_REPO,
    GITHUB_TOKEN,
    GITHUB_USERNAME,
    HTTP_CONNECT_TIMEOUT,
    HTTP_READ_TIMEOUT,
    HTTP_USER_AGENT,
)
from .errors import PublishError


class GitHubPagesPublisher:
    """Thin client over the contents API of one repository."""

    def __init__(
        self,
        username: str = GITHUB_USERNAME,
        repo: str = GITHUB_REPO,
        branch: str = GITHUB_BRANCH,
        token: str = GITHUB_TOKEN,
        api_url: str = GITHUB_API_URL,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.username = username
        self.repo = repo
        self.branch = branch
        self.token = token
        self.api_url = api_url.rstrip("/")
        self._transport = transport

    def _client(self) -> httpx.Client:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": HTTP_USER_AGENT,
        }
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return httpx.Client(
            base_url=self.api_url,
            headers=headers,
            timeout=httpx.Timeout(HTTP_READ_TIMEOUT, connect=HTTP_CONNECT_TIMEOUT),
            transport=self._transport,
        )

    def _contents_path(self, path: str = "") -> str:
        return f"/repos/{self.username}/{self.repo}/contents/{path.lstrip('/')}"

    def public_url(self, filename: str) -> str:
        return f"https://{self.username}.github.io/{self.repo}/{filename}"

    def _existing_sha(self, client: httpx.Client, filename: str) -> Optional[str]:
        r = client.get(self._contents_path(filename), params={"ref": self.branch})
        if r.status_code == 404:
            return None
        if r.status_code != 200:
            raise PublishError(f"GitHub lookup of {filename} failed with HTTP {r.status_code}")
        return r.json().get("sha")

    def publish(self, filename: str, content: str, message: Optional[str] = None) -> Dict[str, object]:
        """
        Create or overwrite ``filename`` and return its sha and public URL.
        """
        body: Dict[str, object] = {
            "message": message or f"Upload roadmap: {filename}",
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": self.branch,
        }
        try:
            with self._client() as client:
                sha = self._existing_sha(client, filename)
                if sha:
                    body["sha"] = sha
                r = client.put(self._contents_path(filename), json=body)
        except httpx.HTTPError as e:
            raise PublishError(f"GitHub upload of {filename} failed: {e}") from e

        if r.status_code not in (200, 201):
            try:
                detail = r.json().get("message", "")
            except ValueError:
                detail = r.text
            raise PublishError(f"Failed to upload file: {detail or r.status_code}")

        data = r.json()
        url = self.public_url(filename)
        logger.info("Published {} to {} ({})", filename, url, "updated" if sha else "created")
        return {
            "sha": (data.get("content") or {}).get("sha"),
            "path": filename,
            "url": url,
            "response": data,
        }

    def list_published(self) -> List[Dict[str, object]]:
        """HTML files at the repository root, with their public URLs."""
        try:
            with self._client() as client:
                r = client.get(self._contents_path(), params={"ref": self.branch})
        except httpx.HTTPError as e:
            raise PublishError(f"Failed to get repository contents: {e}") from e
        if r.status_code != 200:
            raise PublishError(f"Failed to get repository contents: HTTP {r.status_code}")

        return [
            {
                "name": item["name"],
                "url": self.public_url(item["name"]),
                "size": item.get("size"),
                "sha": item.get("sha"),
                "download_url": item.get("download_url"),
                "html_url": item.get("html_url"),
            }
            for item in r.json()
            if item.get("type") == "file" and item.get("name", "").endswith(".html")
        ]
