"""
HTTP collaborators of the data broker.

- HttpService: live GET against an artifact's backend on every serve
- HttpArtifactRetriever: first acquisition of an artifact's bytes from
  the provider connector that offers it
"""

import io
from abc import ABC, abstractmethod
from typing import BinaryIO, Optional, Tuple

import httpx
import structlog

from ..exceptions import DataTransportError
from ..schemas.retrieval import QueryInput

logger = structlog.get_logger()


def build_url(url: str, query_input: Optional[QueryInput]) -> str:
    """Append the query input's optional path to a base URL."""
    if query_input is None or not query_input.path:
        return url
    return f"{url.rstrip('/')}/{query_input.path.lstrip('/')}"


class HttpService:
    """Fetches data from external HTTP backends."""

    def __init__(self, client: Optional[httpx.Client] = None, timeout: float = 30.0):
        self.client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def get(
        self,
        url: str,
        query_input: Optional[QueryInput] = None,
        credentials: Optional[Tuple[Optional[str], Optional[str]]] = None,
    ) -> BinaryIO:
        """GET a backend URL and return the response body as a stream.

        Args:
            url: Backend access URL
            query_input: Query parameters, headers and an optional sub-path
            credentials: Optional (username, password) for basic auth

        Raises:
            DataTransportError: If the backend cannot be reached or answers
                with an error status
        """
        auth = None
        if credentials is not None:
            username, password = credentials
            auth = httpx.BasicAuth(username or "", password or "")

        try:
            response = self.client.get(
                build_url(url, query_input),
                params=query_input.params if query_input else None,
                headers=query_input.headers if query_input else None,
                auth=auth,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("data_source_unreachable", url=url, error=str(e))
            raise DataTransportError("Could not connect to data source.") from e

        return io.BytesIO(response.content)


class ArtifactRetriever(ABC):
    """Pulls an artifact's bytes from the connector that provides it."""

    @abstractmethod
    def retrieve(
        self,
        artifact_id: str,
        remote_address: Optional[str],
        transfer_contract: Optional[str],
        query_input: Optional[QueryInput] = None,
    ) -> BinaryIO:
        """Fetch the artifact's current data.

        Raises:
            DataTransportError: On any network or authorization failure
        """


class HttpArtifactRetriever(ArtifactRetriever):
    """Retrieves artifact data with a GET on the provider's artifact address.

    The transfer contract is passed as the ``transferContract`` query
    parameter so the provider can enforce the agreement on its side.
    """

    def __init__(self, client: Optional[httpx.Client] = None, timeout: float = 30.0):
        self.client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def retrieve(
        self,
        artifact_id: str,
        remote_address: Optional[str],
        transfer_contract: Optional[str],
        query_input: Optional[QueryInput] = None,
    ) -> BinaryIO:
        if not remote_address:
            raise DataTransportError(
                f"Artifact '{artifact_id}' has no remote address to retrieve data from."
            )

        params = dict(query_input.params) if query_input else {}
        if transfer_contract is not None:
            params["transferContract"] = transfer_contract

        try:
            response = self.client.get(
                build_url(remote_address, query_input),
                params=params,
                headers=query_input.headers if query_input else None,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                "artifact_retrieval_failed",
                artifact_id=artifact_id,
                remote_address=remote_address,
                error=str(e),
            )
            raise DataTransportError(
                f"Could not retrieve data for artifact '{artifact_id}'."
            ) from e

        logger.info(
            "artifact_retrieved",
            artifact_id=artifact_id,
            transfer_contract=transfer_contract,
            byte_size=len(response.content),
        )
        return io.BytesIO(response.content)
