from abc import abstractmethod
from typing import Any, Awaitable, Callable, TypeVar

import httpx

from shared.clients.ClientInterface import ClientInterface
from shared.clients.ClientRequestError import ClientRequestError
from shared.clients.vector.VectorRetry import retry_with_backoff
from shared.clients.vector.VectorStoreError import VectorStoreError
from shared.clients.vector.models.VectorMatch import VectorMatch
from shared.clients.vector.models.VectorRecord import VectorRecord
from shared.helper.HelperConfig import HelperConfig

T = TypeVar("T")


class VectorClientInterface(ClientInterface):
    """Namespace-scoped access to a remote vector index.

    Every request method raises VectorStoreError on failure, classified as
    transient or permanent from the HTTP status or the transport exception.
    Callers wrap calls in retry_with_backoff() to retry the transient ones.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "vector"

    @abstractmethod
    def get_namespace(self) -> str:
        """
        Returns the configured namespace that isolates this application's records.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_upsert(self, namespace: str) -> str:
        """Returns the endpoint path for upserting records with raw data (server-side embedding)."""
        pass

    @abstractmethod
    def _get_endpoint_query(self, namespace: str) -> str:
        """Returns the endpoint path for querying with raw data."""
        pass

    @abstractmethod
    def _get_endpoint_delete(self, namespace: str) -> str:
        """Returns the endpoint path for deleting records by id."""
        pass

    @abstractmethod
    def _get_endpoint_reset(self, namespace: str) -> str:
        """Returns the endpoint path for dropping every record of a namespace."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_upsert_payload(self, records: list[VectorRecord]) -> Any:
        """Build the backend-specific body for an upsert request."""
        pass

    @abstractmethod
    def get_query_payload(self, data: str, top_k: int, filter: str, hybrid: bool) -> dict:
        """Build the backend-specific body for a query request.

        Args:
            data (str): Raw query text, embedded by the backend.
            top_k (int): Maximum number of matches.
            filter (str): Metadata filter expression ("" for none).
            hybrid (bool): Combine lexical and dense signals in one ranked list.
        """
        pass

    @abstractmethod
    def get_delete_payload(self, ids: list[str]) -> Any:
        """Build the backend-specific body for a delete-by-id request."""
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def extract_matches(self, raw_response: dict) -> list[VectorMatch]:
        """Extract ranked matches from a raw query response."""
        pass

    @abstractmethod
    def extract_deleted_count(self, raw_response: dict) -> int:
        """Extract the number of deleted records from a raw delete response."""
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_upsert(self, namespace: str, records: list[VectorRecord]) -> None:
        """Insert or overwrite records in a namespace.

        Args:
            namespace (str): Target namespace.
            records (list[VectorRecord]): Records to write. Existing ids are overwritten.
        """
        if not records:
            return
        await self._do_vector_request("POST", self._get_endpoint_upsert(namespace), self.get_upsert_payload(records))

    async def do_query(self, namespace: str, data: str, top_k: int, filter: str = "", hybrid: bool = True) -> list[VectorMatch]:
        """Run a (hybrid) query against a namespace.

        Returns:
            list[VectorMatch]: Matches in ranking order.
        """
        response = await self._do_vector_request(
            "POST",
            self._get_endpoint_query(namespace),
            self.get_query_payload(data=data, top_k=top_k, filter=filter, hybrid=hybrid),
        )
        return self.extract_matches(response.json())

    async def do_delete(self, namespace: str, ids: list[str]) -> int:
        """Delete records by id.

        Returns:
            int: Number of records the backend reports as deleted.
        """
        if not ids:
            return 0
        response = await self._do_vector_request("DELETE", self._get_endpoint_delete(namespace), self.get_delete_payload(ids))
        return self.extract_deleted_count(response.json())

    async def do_reset(self, namespace: str) -> None:
        """Delete every record of a namespace."""
        await self._do_vector_request("DELETE", self._get_endpoint_reset(namespace), None)

    async def retry_with_backoff(self, operation: Callable[[], Awaitable[T]], context: str) -> T:
        """Run operation through the shared retry policy."""
        return await retry_with_backoff(operation, context, logger=self.logging)

    async def _do_vector_request(self, method: str, endpoint: str, body: Any) -> httpx.Response:
        """Send a request and translate every failure into a classified VectorStoreError."""
        try:
            return await self.do_request(method=method, endpoint=endpoint, json=body, raise_on_error=True)
        except ClientRequestError as exc:
            raise VectorStoreError.from_status(str(exc), status_code=exc.status_code or 0, url=exc.url) from exc
        except httpx.TransportError as exc:
            raise VectorStoreError(
                f"Vector store {self.get_engine_name()} unreachable: {exc.__class__.__name__}: {exc}",
                transient=True,
            ) from exc
