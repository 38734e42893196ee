"""HTTP client wrapper for the Transifex REST API."""

import base64
import logging
import os
from typing import Any

import requests
from dotenv import load_dotenv

from .errors import TransifexAPIError
from .polling import JobState, JobStatus

logger = logging.getLogger(__name__)


class TransifexClient:
    """HTTP client for the Transifex REST API with bearer token authentication."""

    DEFAULT_BASE_URL = "https://rest.api.transifex.com"
    CONTENT_TYPE = "application/vnd.api+json"

    def __init__(
        self,
        api_token: str | None = None,
        base_url: str | None = None,
        session: requests.Session | None = None,
        timeout: float = 30,
    ) -> None:
        """Initialize client with credentials.

        Args:
            api_token: Transifex API token (or load from TX_API_TOKEN env)
            base_url: API base URL (or load from TX_API_URL env)
            session: Optional requests session (for connection reuse or testing)
            timeout: Per-request timeout in seconds

        Raises:
            ValueError: If no API token is available
        """
        load_dotenv()

        self.api_token = api_token or os.getenv("TX_API_TOKEN", "")
        self.base_url = (base_url or os.getenv("TX_API_URL", self.DEFAULT_BASE_URL)).rstrip("/")
        self.timeout = timeout

        if not self.api_token:
            raise ValueError(
                "Missing Transifex API token. Set TX_API_TOKEN or save an API token "
                "in the sync settings."
            )

        self.session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": self.CONTENT_TYPE,
            "Accept": self.CONTENT_TYPE,
        }

    def _request(
        self,
        method: str,
        path: str,
        json_data: dict[str, Any] | None = None,
        allow_redirects: bool = True,
    ) -> requests.Response:
        """Make an authenticated request to the Transifex API.

        Args:
            method: HTTP method
            path: API path (without base URL)
            json_data: Optional JSON:API body
            allow_redirects: Follow redirects (disabled when polling downloads)

        Returns:
            The raw response, for any status below 400

        Raises:
            TransifexAPIError: On API errors or transport failures
        """
        url = f"{self.base_url}{path}"
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(
                method=method,
                url=url,
                headers=self._headers(),
                json=json_data,
                allow_redirects=allow_redirects,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransifexAPIError(f"Request failed: {e}") from e

        if response.status_code >= 400:
            error_msg = f"API error {response.status_code}: {response.text[:500]}"
            raise TransifexAPIError(error_msg, response.status_code, response)

        return response

    def get(self, path: str) -> dict[str, Any]:
        """Make a GET request and parse the JSON body."""
        response = self._request("GET", path)
        if not response.content:
            return {}
        return response.json()  # type: ignore[no-any-return]

    def post(self, path: str, json_data: dict[str, Any]) -> dict[str, Any]:
        """Make a POST request and parse the JSON body."""
        response = self._request("POST", path, json_data)
        if not response.content:
            return {}
        return response.json()  # type: ignore[no-any-return]

    # -------------------------------------------------------------------------
    # Health Check
    # -------------------------------------------------------------------------

    def verify_connection(self) -> bool:
        """Verify API connectivity and authentication.

        Returns:
            True if the token is accepted

        Raises:
            TransifexAPIError: On connection or auth failure (401 for a bad token)
        """
        self._request("GET", "/user")
        return True

    # -------------------------------------------------------------------------
    # Async Uploads
    # -------------------------------------------------------------------------

    def create_upload(self, resource_id: str, content: bytes) -> str:
        """Submit source content for a resource.

        Existing translations of unchanged strings are kept and edited
        strings are not replaced.

        Args:
            resource_id: Compound resource id (o:org:p:project:r:slug)
            content: Exported document archive

        Returns:
            Upload job id
        """
        payload = {
            "data": {
                "type": "resource_strings_async_uploads",
                "attributes": {
                    "content": base64.b64encode(content).decode("ascii"),
                    "content_encoding": "base64",
                    "replace_edited_strings": False,
                    "keep_translations": True,
                },
                "relationships": {
                    "resource": {"data": {"type": "resources", "id": resource_id}},
                },
            }
        }
        response = self.post("/resource_strings_async_uploads", payload)
        return _job_id(response)

    def get_upload_status(self, job_id: str) -> JobState:
        """Fetch the current state of an upload job."""
        response = self.get(f"/resource_strings_async_uploads/{job_id}")
        attributes = response.get("data", {}).get("attributes", {})
        raw_status = attributes.get("status", "")
        return JobState(
            status=JobStatus.parse(raw_status),
            raw_status=raw_status,
            details=attributes.get("errors") or attributes.get("details"),
        )

    # -------------------------------------------------------------------------
    # Async Downloads
    # -------------------------------------------------------------------------

    def create_download(self, resource_id: str, language_code: str) -> str:
        """Request a translation file for one resource and language.

        Args:
            resource_id: Compound resource id
            language_code: Language code, with or without the ``l:`` prefix

        Returns:
            Download job id
        """
        language_id = language_code if language_code.startswith("l:") else f"l:{language_code}"
        payload = {
            "data": {
                "type": "resource_translations_async_downloads",
                "attributes": {
                    "content_encoding": "text",
                    "file_type": "default",
                    "mode": "default",
                    "pseudo": False,
                },
                "relationships": {
                    "language": {"data": {"type": "languages", "id": language_id}},
                    "resource": {"data": {"type": "resources", "id": resource_id}},
                },
            }
        }
        response = self.post("/resource_translations_async_downloads", payload)
        return _job_id(response)

    def get_download_status(self, job_id: str) -> JobState:
        """Fetch the current state of a download job.

        A redirect carrying a ``Location`` header means the file is ready;
        the state is reported as succeeded with that location.
        """
        response = self._request(
            "GET",
            f"/resource_translations_async_downloads/{job_id}",
            allow_redirects=False,
        )

        location = response.headers.get("Location")
        if 300 <= response.status_code < 400 and location:
            return JobState(
                status=JobStatus.SUCCEEDED,
                raw_status=str(response.status_code),
                location=location,
            )

        body = response.json() if response.content else {}
        attributes = body.get("data", {}).get("attributes", {})
        raw_status = attributes.get("status", "")
        status = JobStatus.parse(raw_status)
        if status is JobStatus.SUCCEEDED:
            # Only a redirect delivers the file; keep polling until it arrives.
            status = JobStatus.PROCESSING
        return JobState(
            status=status,
            raw_status=raw_status,
            details=attributes.get("errors") or attributes.get("details"),
        )

    def fetch_content(self, url: str) -> bytes:
        """Download a ready translation file."""
        try:
            response = self.session.get(
                url,
                headers={"Authorization": f"Bearer {self.api_token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransifexAPIError(f"Download failed: {e}") from e

        if response.status_code >= 400:
            raise TransifexAPIError(
                f"Download error {response.status_code}: {response.text[:500]}",
                response.status_code,
                response,
            )
        return response.content

    # -------------------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------------------

    def get_project_languages(self, project_id: str) -> list[dict[str, Any]]:
        """List the languages configured on a project.

        Args:
            project_id: Compound project id (o:org:p:project)

        Returns:
            Language records with ``code`` and ``name`` keys
        """
        response = self.get(f"/projects/{project_id}/languages")
        languages = []
        for item in response.get("data", []):
            attributes = item.get("attributes", {})
            languages.append({
                "id": item.get("id", ""),
                "code": attributes.get("code", ""),
                "name": attributes.get("name", ""),
            })
        return languages


def _job_id(response: dict[str, Any]) -> str:
    job_id = response.get("data", {}).get("id", "")
    if not job_id:
        raise TransifexAPIError("Response did not include a job id")
    return job_id
