"""HTTP client wrapper for the Google Drive document workspace."""

import json
import logging
import os
import uuid
from dataclasses import dataclass
from typing import Any, Iterable, Protocol

import requests
from dotenv import load_dotenv

from ..models.config import DocumentFormat
from .errors import ExportError, WorkspaceError

logger = logging.getLogger(__name__)

ARCHIVE_SIGNATURE = b"PK"


@dataclass
class DiscoveredFile:
    """A document found in a source location."""

    file_id: str
    file_name: str
    mime_type: str
    last_modified: str
    size: int = 0
    url: str = ""


class DocumentWorkspace(Protocol):
    """Operations the sync engine needs from the document workspace."""

    def list_documents(self, folder_id: str, formats: Iterable[DocumentFormat]) -> list[DiscoveredFile]: ...

    def get_document(self, file_id: str) -> DiscoveredFile: ...

    def export_document(self, file_id: str, fmt: DocumentFormat) -> bytes: ...

    def import_document(self, name: str, content: bytes, fmt: DocumentFormat, folder_id: str) -> str: ...


def check_archive_signature(content: bytes) -> None:
    """Raise ExportError unless content starts with the zip archive signature."""
    if content[:2] != ARCHIVE_SIGNATURE:
        raise ExportError(f"Exported content is not a document archive (starts with {content[:2]!r})")


class DriveWorkspace:
    """Google Drive v3 REST client with bearer token authentication."""

    API_URL = "https://www.googleapis.com/drive/v3"
    UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"
    FILE_FIELDS = "id,name,mimeType,modifiedTime,size,webViewLink"

    def __init__(
        self,
        access_token: str | None = None,
        session: requests.Session | None = None,
        timeout: float = 60,
    ) -> None:
        """Initialize the workspace client.

        Args:
            access_token: OAuth access token (or load from DRIVE_ACCESS_TOKEN env)
            session: Optional requests session
            timeout: Per-request timeout in seconds

        Raises:
            ValueError: If no access token is available
        """
        load_dotenv()

        self.access_token = access_token or os.getenv("DRIVE_ACCESS_TOKEN", "")
        if not self.access_token:
            raise ValueError("Missing Drive access token. Set DRIVE_ACCESS_TOKEN.")

        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {self.access_token}"
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise WorkspaceError(f"Workspace request failed: {e}") from e

        if response.status_code >= 400:
            raise WorkspaceError(
                f"Workspace error {response.status_code}: {response.text[:500]}",
                response.status_code,
            )
        return response

    @staticmethod
    def _to_discovered(item: dict[str, Any]) -> DiscoveredFile:
        return DiscoveredFile(
            file_id=item.get("id", ""),
            file_name=item.get("name", ""),
            mime_type=item.get("mimeType", ""),
            last_modified=item.get("modifiedTime", ""),
            size=int(item.get("size") or 0),
            url=item.get("webViewLink", ""),
        )

    def list_documents(self, folder_id: str, formats: Iterable[DocumentFormat]) -> list[DiscoveredFile]:
        """List documents of the given formats directly inside a folder.

        Args:
            folder_id: Drive folder ID
            formats: Formats whose native document types are included

        Returns:
            Discovered documents, following every result page
        """
        mime_filter = " or ".join(f"mimeType='{fmt.native_mime_type}'" for fmt in sorted(formats))
        query = f"'{folder_id}' in parents and trashed=false and ({mime_filter})"

        documents: list[DiscoveredFile] = []
        page_token: str | None = None
        while True:
            params = {
                "q": query,
                "fields": f"nextPageToken,files({self.FILE_FIELDS})",
                "pageSize": "100",
            }
            if page_token:
                params["pageToken"] = page_token

            data = self._request("GET", f"{self.API_URL}/files", params=params).json()
            documents.extend(self._to_discovered(item) for item in data.get("files", []))

            page_token = data.get("nextPageToken")
            if not page_token:
                return documents

    def get_document(self, file_id: str) -> DiscoveredFile:
        """Fetch current metadata for one document."""
        response = self._request(
            "GET",
            f"{self.API_URL}/files/{file_id}",
            params={"fields": self.FILE_FIELDS},
        )
        return self._to_discovered(response.json())

    def export_document(self, file_id: str, fmt: DocumentFormat) -> bytes:
        """Export a native document to its archive format.

        Raises:
            ExportError: If the exported bytes are not an archive
        """
        response = self._request(
            "GET",
            f"{self.API_URL}/files/{file_id}/export",
            params={"mimeType": fmt.export_mime_type},
        )
        content = response.content
        check_archive_signature(content)
        return content

    def import_document(self, name: str, content: bytes, fmt: DocumentFormat, folder_id: str) -> str:
        """Create a native document from archive content.

        Args:
            name: Name of the new document
            content: Archive bytes (docx or xlsx)
            fmt: Format of the content
            folder_id: Destination folder ID

        Returns:
            ID of the created document
        """
        metadata = {"name": name, "mimeType": fmt.native_mime_type, "parents": [folder_id]}
        boundary = uuid.uuid4().hex
        body = b"".join([
            f"--{boundary}\r\n".encode(),
            b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
            json.dumps(metadata).encode("utf-8"),
            f"\r\n--{boundary}\r\n".encode(),
            f"Content-Type: {fmt.export_mime_type}\r\n\r\n".encode(),
            content,
            f"\r\n--{boundary}--\r\n".encode(),
        ])

        response = self._request(
            "POST",
            f"{self.UPLOAD_URL}/files",
            params={"uploadType": "multipart", "fields": "id"},
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            data=body,
        )
        file_id = response.json().get("id", "")
        logger.debug("Imported %s as %s into folder %s", name, file_id, folder_id)
        return file_id
