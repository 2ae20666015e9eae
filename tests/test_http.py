"""Tests for the HTTP collaborators, using httpx.MockTransport."""

import httpx
import pytest

from dataspace_broker.exceptions import DataTransportError
from dataspace_broker.schemas.retrieval import QueryInput
from dataspace_broker.services.http import HttpArtifactRetriever, HttpService, build_url


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestBuildUrl:
    def test_without_query_input(self):
        assert build_url("https://backend/data", None) == "https://backend/data"

    def test_appends_path(self):
        query = QueryInput(path="/sensors/1")

        assert build_url("https://backend/data/", query) == "https://backend/data/sensors/1"


class TestHttpService:
    """Tests for live backend queries."""

    def test_get_passes_params_and_headers(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=b"payload")

        service = HttpService(client=mock_client(handler))
        query = QueryInput(params={"limit": "10"}, headers={"X-Trace": "abc"}, path="items")

        stream = service.get("https://backend/data", query)

        assert stream.read() == b"payload"
        assert str(seen[0].url) == "https://backend/data/items?limit=10"
        assert seen[0].headers["x-trace"] == "abc"
        assert "authorization" not in seen[0].headers

    def test_get_with_credentials_uses_basic_auth(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=b"ok")

        service = HttpService(client=mock_client(handler))

        service.get("https://backend/data", credentials=("user", "pass"))

        assert seen[0].headers["authorization"].startswith("Basic ")

    def test_error_status_raises_transport_error(self):
        service = HttpService(client=mock_client(lambda request: httpx.Response(503)))

        with pytest.raises(DataTransportError) as exc_info:
            service.get("https://backend/data")

        assert exc_info.value.message == "Could not connect to data source."

    def test_connection_failure_raises_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        service = HttpService(client=mock_client(handler))

        with pytest.raises(DataTransportError):
            service.get("https://backend/data")


class TestHttpArtifactRetriever:
    """Tests for acquiring artifact data from the provider."""

    def test_passes_transfer_contract(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=b"artifact bytes")

        retriever = HttpArtifactRetriever(client=mock_client(handler))

        stream = retriever.retrieve(
            "artifact-1",
            "https://provider/api/artifacts/7/data",
            "https://provider/agreements/1",
            QueryInput(params={"day": "monday"}),
        )

        assert stream.read() == b"artifact bytes"
        params = seen[0].url.params
        assert params["transferContract"] == "https://provider/agreements/1"
        assert params["day"] == "monday"

    def test_missing_remote_address_raises(self):
        retriever = HttpArtifactRetriever(client=mock_client(lambda r: httpx.Response(200)))

        with pytest.raises(DataTransportError):
            retriever.retrieve("artifact-1", None, "https://provider/agreements/1")

    def test_unauthorized_raises_transport_error(self):
        retriever = HttpArtifactRetriever(
            client=mock_client(lambda request: httpx.Response(401))
        )

        with pytest.raises(DataTransportError):
            retriever.retrieve("artifact-1", "https://provider/api/artifacts/7/data", None)
