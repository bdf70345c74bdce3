"""
Monday.com GraphQL API client
"""
import json
from typing import Any, Dict, Optional

import httpx

from mediation_intake.core.config import settings, MondayConfig
from mediation_intake.utils.exceptions import ExternalServiceError
from mediation_intake.utils.http import request_with_retries
from mediation_intake.utils.logging import get_logger

logger = get_logger(__name__)

CREATE_ITEM_MUTATION = """
mutation CreateItem($boardId: ID!, $groupId: String!, $itemName: String!, $columnValues: JSON) {
  create_item(board_id: $boardId, group_id: $groupId, item_name: $itemName, column_values: $columnValues) {
    id
  }
}
"""

GET_ITEM_QUERY = """
query GetItem($itemIds: [ID!]) {
  items(ids: $itemIds) {
    id
    name
  }
}
"""


class MondayClient:
    """Client for the Monday.com GraphQL API"""

    def __init__(
        self,
        config: Optional[MondayConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or settings.monday
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": self.config.api_token or "",
            "API-Version": self.config.api_version,
        }

    async def graphql(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        idempotent: bool = False,
    ) -> Dict[str, Any]:
        """
        Run a GraphQL query. Mutations are sent once unless the connection
        failed; pass idempotent=True for read-only queries.

        Returns:
            The "data" member of the response

        Raises:
            ExternalServiceError: Not configured, HTTP failure or GraphQL errors
        """
        if not self.config.is_configured:
            raise ExternalServiceError("Monday.com integration is not configured", service="monday")

        body = {"query": query, "variables": variables or {}}
        try:
            async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
                response = await request_with_retries(
                    lambda: client.post(self.config.api_url, json=body, headers=self._get_headers()),
                    idempotent=idempotent,
                    service="Monday",
                )
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Monday request failed: {e}", service="monday")

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        errors = payload.get("errors") or []
        if not isinstance(errors, list):
            errors = [errors]
        if response.is_error or errors:
            messages = [err.get("message", "") if isinstance(err, dict) else str(err) for err in errors]
            reason = "; ".join(filter(None, messages)) or f"{response.status_code} {response.reason_phrase}"
            raise ExternalServiceError(f"Monday GraphQL error: {reason}", service="monday")

        data = payload.get("data")
        if not isinstance(data, dict) or not data:
            raise ExternalServiceError("Monday GraphQL response contained no data", service="monday")
        return data

    async def create_item(self, group_id: str, item_name: str, column_values: Dict[str, Any]) -> str:
        """
        Create an item on the master board.

        A dropdown label unknown to the board rejects the whole item; in that
        case the item is created again without dropdown values.

        Returns:
            The new item id
        """
        variables = {
            "boardId": str(self.config.board_id),
            "groupId": group_id,
            "itemName": item_name,
            "columnValues": json.dumps(column_values),
        }
        try:
            data = await self.graphql(CREATE_ITEM_MUTATION, variables)
        except ExternalServiceError as e:
            if "dropdown label" not in str(e.detail) or "does not exist" not in str(e.detail):
                raise
            logger.warning(
                "[yellow]⚠️  Monday dropdown label missing, creating item without dropdown values[/yellow]"
            )
            cleaned = {
                key: value for key, value in column_values.items()
                if not (isinstance(value, dict) and "labels" in value)
            }
            variables["columnValues"] = json.dumps(cleaned)
            data = await self.graphql(CREATE_ITEM_MUTATION, variables)

        item_id = str(data["create_item"]["id"])
        logger.info(f"[green]✅ Monday item created:[/green] [cyan]{item_id}[/cyan] in group {group_id}")
        return item_id

    async def item_exists(self, item_id: str) -> bool:
        data = await self.graphql(GET_ITEM_QUERY, {"itemIds": [str(item_id)]}, idempotent=True)
        return bool(data.get("items"))

    def item_url(self, item_id: str) -> str:
        return f"{self.config.web_base_url}/boards/{self.config.board_id}/pulses/{item_id}"
