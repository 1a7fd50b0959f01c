from typing import Any

from shared.clients.vector.VectorClientInterface import VectorClientInterface
from shared.clients.vector.models.VectorMatch import VectorMatch
from shared.clients.vector.models.VectorRecord import VectorMetadata, VectorRecord
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class VectorClientUpstash(VectorClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("REST_URL", default="", val_type="string")
        self._token = self.get_config_val("REST_TOKEN", default="", val_type="string")
        self._namespace = self.get_config_val("NAMESPACE", default="handbook", val_type="string")
        self._fusion_algorithm = self.get_config_val("FUSION_ALGORITHM", default="DBSF", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Upstash"

    def get_namespace(self) -> str:
        return self._namespace

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="REST_URL", val_type="string", default=""),
            EnvConfig(env_key="REST_TOKEN", val_type="string", default=""),
            EnvConfig(env_key="NAMESPACE", val_type="string", default="handbook"),
            EnvConfig(env_key="FUSION_ALGORITHM", val_type="string", default="DBSF"),
        ]

    def _get_connection_keys(self) -> list[str]:
        # unconfigured is a valid state, every caller degrades to a no-op
        return ["REST_URL", "REST_TOKEN"]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._token:
            return {"Authorization": f"Bearer {self._token}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/info"

    def _with_namespace(self, path: str, namespace: str) -> str:
        return f"{path}/{namespace}" if namespace else path

    def _get_endpoint_upsert(self, namespace: str) -> str:
        return self._with_namespace("/upsert-data", namespace)

    def _get_endpoint_query(self, namespace: str) -> str:
        return self._with_namespace("/query-data", namespace)

    def _get_endpoint_delete(self, namespace: str) -> str:
        return self._with_namespace("/delete", namespace)

    def _get_endpoint_reset(self, namespace: str) -> str:
        return self._with_namespace("/reset", namespace)

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_upsert_payload(self, records: list[VectorRecord]) -> Any:
        return [record.to_payload() for record in records]

    def get_query_payload(self, data: str, top_k: int, filter: str, hybrid: bool) -> dict:
        payload = {
            "data": data,
            "topK": top_k,
            "includeMetadata": True,
            "includeData": True,
        }
        if filter:
            payload["filter"] = filter
        if hybrid:
            payload["queryMode"] = "HYBRID"
            payload["fusionAlgorithm"] = self._fusion_algorithm
        return payload

    def get_delete_payload(self, ids: list[str]) -> Any:
        return {"ids": ids}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_matches(self, raw_response: dict) -> list[VectorMatch]:
        matches: list[VectorMatch] = []
        for item in raw_response.get("result") or []:
            raw_metadata = item.get("metadata")
            metadata = None
            if isinstance(raw_metadata, dict):
                try:
                    metadata = VectorMetadata.model_validate(raw_metadata)
                except ValueError as exc:
                    self.logging.warning("Ignoring malformed metadata on vector record %r: %s", item.get("id"), exc)
            matches.append(
                VectorMatch(
                    id=str(item.get("id", "")),
                    score=float(item.get("score") or 0.0),
                    data=item.get("data"),
                    metadata=metadata,
                )
            )
        return matches

    def extract_deleted_count(self, raw_response: dict) -> int:
        result = raw_response.get("result") or {}
        return int(result.get("deleted", 0)) if isinstance(result, dict) else 0
