"""
Typed TheHive v1 API calls used by the tools and resources.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from ...core.credentials import Credentials
from ...core.logging import get_logger
from .http import ConfirmFn, TheHiveHttpClient


logger = get_logger("thehive_mcp.integrations.thehive.client")

API = "/api/v1"
CORTEX = f"{API}/connector/cortex"


class TheHiveClient:
    """
    Thin wrapper over ``TheHiveHttpClient`` with one method per endpoint.

    Methods return TheHive's JSON unchanged; shaping is up to the caller.
    """

    def __init__(self, http_client: TheHiveHttpClient) -> None:
        self._http = http_client

    @classmethod
    def from_credentials(
        cls,
        credentials: Credentials,
        confirm: Optional[ConfirmFn] = None,
        timeout_seconds: int = 30,
    ) -> "TheHiveClient":
        http_client = TheHiveHttpClient(
            credentials=credentials,
            confirm=confirm,
            timeout_seconds=timeout_seconds,
        )
        return cls(http_client=http_client)

    @property
    def base_url(self) -> str:
        return self._http.base_url

    def close(self) -> None:
        self._http.close()

    # Query and user

    def query(self, pipeline: Sequence[Dict[str, Any]], exclude_fields: Sequence[str] = ()) -> Any:
        body: Dict[str, Any] = {"query": list(pipeline)}
        if exclude_fields:
            body["excludeFields"] = list(exclude_fields)
        return self._http.post(f"{API}/query", json=body)

    def current_user(self) -> Dict[str, Any]:
        return self._http.get(f"{API}/user/current")

    # Create

    def create_alert(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._http.post(f"{API}/alert", json=data)

    def create_case(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._http.post(f"{API}/case", json=data)

    def create_task_in_case(self, case_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._http.post(f"{API}/case/{case_id}/task", json=data)

    def create_observable_in_case(self, case_id: str, data: Dict[str, Any]) -> Any:
        return self._http.post(f"{API}/case/{case_id}/observable", json=data)

    def create_observable_in_alert(self, alert_id: str, data: Dict[str, Any]) -> Any:
        return self._http.post(f"{API}/alert/{alert_id}/observable", json=data)

    # Update and delete

    def update_entity(self, entity_type: str, entity_id: str, data: Dict[str, Any]) -> Any:
        return self._http.patch(f"{API}/{entity_type}/{entity_id}", json=data)

    def delete_entity(self, entity_type: str, entity_id: str) -> None:
        self._http.delete(f"{API}/{entity_type}/{entity_id}")

    # Comments

    def comment_case(self, case_id: str, message: str) -> Dict[str, Any]:
        return self._http.post(f"{API}/case/{case_id}/comment", json={"message": message})

    def add_task_log(self, task_id: str, message: str) -> Dict[str, Any]:
        return self._http.post(f"{API}/task/{task_id}/log", json={"message": message})

    # Promote and merge

    def promote_alert(self, alert_id: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._http.post(f"{API}/alert/{alert_id}/case", json=data or {})

    def merge_cases(self, case_ids: Sequence[str]) -> Dict[str, Any]:
        return self._http.post(f"{API}/case/_merge/{','.join(case_ids)}", json={})

    def merge_alert_into_case(self, alert_id: str, case_id: str) -> Dict[str, Any]:
        return self._http.post(f"{API}/alert/{alert_id}/merge/{case_id}", json={})

    def bulk_merge_alerts_into_case(self, alert_ids: Sequence[str], case_id: str) -> Dict[str, Any]:
        return self._http.post(
            f"{API}/alert/merge/_bulk",
            json={"caseId": case_id, "alertIds": list(alert_ids)},
        )

    def merge_observables(self, case_id: str) -> Dict[str, Any]:
        return self._http.post(f"{API}/case/{case_id}/observable/_merge", json={})

    # Cortex

    def create_analyzer_job(
        self,
        analyzer_id: str,
        cortex_id: str,
        observable_id: str,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "analyzerId": analyzer_id,
            "cortexId": cortex_id,
            "artifactId": observable_id,
        }
        if parameters:
            payload["parameters"] = parameters
        return self._http.post(f"{CORTEX}/job", json=payload)

    def get_analyzer_job(self, job_id: str) -> Dict[str, Any]:
        return self._http.get(f"{CORTEX}/job/{job_id}")

    def list_analyzers(self) -> List[Dict[str, Any]]:
        return self._http.get(f"{CORTEX}/analyzer", params={"range": "0-100"})

    def list_responders(self, entity_type: str, entity_id: str) -> List[Dict[str, Any]]:
        return self._http.get(f"{CORTEX}/responder/{entity_type}/{entity_id}")

    def create_responder_action(
        self,
        responder_id: str,
        entity_type: str,
        entity_id: str,
        cortex_id: str = "",
        parameters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "responderId": responder_id,
            "objectType": entity_type,
            "objectId": entity_id,
        }
        if cortex_id:
            payload["cortexId"] = cortex_id
        if parameters:
            payload["parameters"] = parameters
        return self._http.post(f"{CORTEX}/action", json=payload)

    def list_actions(self, entity_type: str, entity_id: str) -> List[Dict[str, Any]]:
        return self._http.get(f"{CORTEX}/action/{entity_type}/{entity_id}")

    # Metadata

    def list_custom_fields(self) -> List[Dict[str, Any]]:
        return self._http.get(f"{API}/customField")

    def run_named_query(self, name: str) -> Any:
        """
        Run a single-operation pipeline such as ``listUser`` or ``listCaseStatus``.
        """

        return self.query([{"_name": name}])

    # Health check

    def ping(self) -> bool:
        """
        Authenticated connectivity check used at stdio startup.
        """

        self.current_user()
        logger.info("TheHive connection verified", extra={"base_url": self.base_url})
        return True
