"""
Insightly CRM REST API client
"""
import base64
import json
from typing import Dict, Any, List, Optional

import httpx

from mediation_intake.core.config import settings, InsightlyConfig
from mediation_intake.external.crm.insightly import (
    LEAD_SOURCES_TO_CREATE,
    lead_source_registry,
    participant_names,
    select_match,
)
from mediation_intake.external.crm.models import ApiError, CRMResult, NotFound, Ok
from mediation_intake.schemas.insightly import InsightlyLead, InsightlyLeadSource
from mediation_intake.utils.exceptions import CRMAPIError, CRMErrorKind
from mediation_intake.utils.http import request_with_retries
from mediation_intake.utils.logging import get_logger

logger = get_logger(__name__)


def build_auth_header(api_key: str) -> str:
    """Insightly uses Basic auth with the API key as username and an empty password"""
    token = base64.b64encode(f"{api_key}:".encode()).decode()
    return f"Basic {token}"


def parse_error_response(response: httpx.Response) -> str:
    """Prefer the JSON message/error field, fall back to the raw body"""
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            for key in ("message", "error", "Message"):
                if isinstance(body.get(key), str):
                    return body[key]
            return json.dumps(body)
        if body is not None:
            return str(body)
    return response.text or response.reason_phrase or "Unknown error"


def classify_status(status_code: int) -> CRMErrorKind:
    if status_code in (401, 403):
        return CRMErrorKind.AUTH
    if status_code == 429:
        return CRMErrorKind.RATE_LIMIT
    if status_code >= 500:
        return CRMErrorKind.SERVER
    return CRMErrorKind.CLIENT


class InsightlyClient:
    """
    Client for interacting with the Insightly REST API.
    Handles authentication, retries, and error classification.

    Low level requests raise CRMAPIError; the record operations below
    return Ok / NotFound / ApiError results instead.
    """

    def __init__(
        self,
        config: Optional[InsightlyConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or settings.insightly
        self.base_url = self.config.api_url
        self.api_key = self.config.api_key
        self.timeout = self.config.timeout
        self.retry = self.config.retry
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": build_auth_header(self.api_key),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _send_with_retry(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        **kwargs
    ) -> httpx.Response:
        """
        Send a request, retrying rate limits and transport failures.

        429 responses honour Retry-After (capped at max_delay); network
        errors back off exponentially. Writes (POST Leads, Opportunities,
        Links, Notes) are only resent when the connection was never made.
        Gives up after max_retries retries.
        """
        try:
            response = await request_with_retries(
                lambda: client.request(method, url, **kwargs),
                max_attempts=self.retry.max_retries + 1,
                base_delay=self.retry.initial_delay,
                max_delay=self.retry.max_delay,
                backoff_multiplier=self.retry.backoff_multiplier,
                retry_statuses={429},
                jitter=False,
                service="Insightly",
            )
        except httpx.RequestError as e:
            raise CRMAPIError(
                f"Could not reach Insightly: {e}",
                kind=CRMErrorKind.NETWORK,
            )

        if response.status_code == 429:
            raise CRMAPIError(
                "Insightly rate limit exceeded. Please try again later.",
                kind=CRMErrorKind.RATE_LIMIT,
                response_status=429,
            )
        return response

    async def request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Make an authenticated request to the Insightly API.

        Args:
            method: HTTP method
            endpoint: Path relative to the API url (e.g. "Leads")
            data: JSON body
            params: Query parameters

        Returns:
            Decoded JSON body, or an empty dict for an empty body

        Raises:
            CRMAPIError: Classified failure (auth, network, rate_limit, ...)
        """
        if not self.api_key:
            raise CRMAPIError("Insightly API key is not configured", kind=CRMErrorKind.NOT_CONFIGURED)

        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        logger.debug(f"[cyan]Insightly {method}[/cyan] {url}")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await self._send_with_retry(
                client,
                method,
                url,
                headers=self._get_headers(),
                json=data,
                params=params,
            )

        logger.debug(f"[dim]Response status:[/dim] {response.status_code}")

        if response.is_error:
            message = parse_error_response(response)
            kind = classify_status(response.status_code)
            log = logger.debug if response.status_code == 404 else logger.error
            log(
                f"[red]❌ Insightly API error[/red] [yellow]{response.status_code}[/yellow] "
                f"{method} {endpoint}: {message}"
            )
            raise CRMAPIError(
                f"Insightly API error ({response.status_code}): {message}",
                kind=kind,
                response_status=response.status_code,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            raise CRMAPIError(
                "Insightly returned a response that is not valid JSON",
                kind=CRMErrorKind.INVALID_RESPONSE,
                response_status=response.status_code,
            )

    async def _result(self, method: str, endpoint: str, **kwargs) -> CRMResult:
        try:
            return Ok(await self.request(method, endpoint, **kwargs))
        except CRMAPIError as e:
            if e.response_status == 404:
                return NotFound(endpoint)
            return ApiError.from_exception(e)

    # ------------------------------------------------------------------
    # Leads
    # ------------------------------------------------------------------

    def _parse_leads(self, body: Any) -> List[InsightlyLead]:
        if not isinstance(body, list):
            raise CRMAPIError("Expected a list of Leads", kind=CRMErrorKind.INVALID_RESPONSE)
        return [InsightlyLead.model_validate(item) for item in body]

    async def search_leads(
        self,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> CRMResult:
        """
        Search Leads by name or by email.

        Returns:
            Ok(List[InsightlyLead]); an empty list when there is nothing to search for
        """
        params: Dict[str, Any] = {}
        if email:
            params["email"] = email
        else:
            if first_name:
                params["first_name"] = first_name
            if last_name:
                params["last_name"] = last_name
        if not params:
            return Ok([])

        params["top"] = self.config.search_page_size
        params["brief"] = "false"

        result = await self._result("GET", "Leads", params=params)
        if isinstance(result, NotFound):
            return Ok([])
        if isinstance(result, ApiError):
            return result
        try:
            return Ok(self._parse_leads(result.value))
        except (CRMAPIError, ValueError) as e:
            return ApiError(kind=CRMErrorKind.INVALID_RESPONSE, message=f"Invalid Lead search response: {e}")

    async def find_matching_lead(self, participant: Dict[str, Any]) -> CRMResult:
        """
        Look for an existing Lead that is an exact duplicate of a participant.

        Candidates come from a name search plus an email search; the
        lowest LEAD_ID among exact matches wins.

        Returns:
            Ok(InsightlyLead) or Ok(None) when nothing matches
        """
        names = participant_names(participant)
        candidates: Dict[int, InsightlyLead] = {}

        by_name = await self.search_leads(names["first_name"], names["last_name"])
        if isinstance(by_name, ApiError):
            return by_name
        for lead in by_name.value:
            candidates[lead.LEAD_ID] = lead

        if participant.get("email"):
            by_email = await self.search_leads(email=participant["email"])
            if isinstance(by_email, ApiError):
                return by_email
            for lead in by_email.value:
                candidates.setdefault(lead.LEAD_ID, lead)

        return Ok(select_match(candidates.values(), participant))

    async def get_lead(self, lead_id: int) -> CRMResult:
        result = await self._result("GET", f"Leads/{lead_id}")
        if not isinstance(result, Ok):
            return result
        try:
            return Ok(InsightlyLead.model_validate(result.value))
        except ValueError as e:
            return ApiError(kind=CRMErrorKind.INVALID_RESPONSE, message=f"Invalid Lead response: {e}")

    async def create_lead(self, payload: Dict[str, Any]) -> CRMResult:
        """Returns Ok(lead_id)"""
        result = await self._result("POST", "Leads", data=payload)
        if not isinstance(result, Ok):
            return result
        lead_id = result.value.get("LEAD_ID") if isinstance(result.value, dict) else None
        if not lead_id:
            return ApiError(kind=CRMErrorKind.INVALID_RESPONSE, message="Insightly did not return a LEAD_ID")
        logger.info(f"[green]✅ Created Insightly Lead[/green] [cyan]{lead_id}[/cyan]")
        return Ok(int(lead_id))

    async def add_lead_note(self, lead_id: int, note: Dict[str, Any]) -> CRMResult:
        return await self._result("POST", f"Leads/{lead_id}/Notes", data=note)

    # ------------------------------------------------------------------
    # Cases
    # ------------------------------------------------------------------

    async def create_case(self, payload: Dict[str, Any]) -> CRMResult:
        """Returns Ok(case_id)"""
        result = await self._result("POST", self.config.case_endpoint, data=payload)
        if not isinstance(result, Ok):
            return result
        id_field = self.config.case_id_field
        case_id = result.value.get(id_field) if isinstance(result.value, dict) else None
        if not case_id:
            return ApiError(kind=CRMErrorKind.INVALID_RESPONSE, message=f"Insightly did not return a {id_field}")
        logger.info(f"[green]✅ Created Insightly Case[/green] [cyan]{case_id}[/cyan]")
        return Ok(int(case_id))

    async def link_lead_to_case(self, case_id: int, link: Dict[str, Any]) -> CRMResult:
        return await self._result("POST", f"{self.config.case_endpoint}/{case_id}/Links", data=link)

    # ------------------------------------------------------------------
    # Lead sources
    # ------------------------------------------------------------------

    async def fetch_lead_sources(self) -> CRMResult:
        result = await self._result("GET", "LeadSources")
        if not isinstance(result, Ok):
            return result
        try:
            return Ok([InsightlyLeadSource.model_validate(item) for item in result.value])
        except (TypeError, ValueError) as e:
            return ApiError(kind=CRMErrorKind.INVALID_RESPONSE, message=f"Invalid Lead Source response: {e}")

    async def create_lead_source(self, name: str) -> CRMResult:
        result = await self._result("POST", "LeadSources", data={"LEAD_SOURCE": name, "DEFAULT_VALUE": False})
        if not isinstance(result, Ok):
            return result
        try:
            return Ok(InsightlyLeadSource.model_validate(result.value))
        except ValueError as e:
            return ApiError(kind=CRMErrorKind.INVALID_RESPONSE, message=f"Invalid Lead Source response: {e}")

    async def ensure_lead_sources(self) -> Dict[str, Any]:
        """
        Make sure every paper intake Lead Source exists in Insightly.
        Creates the missing ones and refreshes the lead source cache.
        """
        existing = await self.fetch_lead_sources()
        if not isinstance(existing, Ok):
            message = existing.message if isinstance(existing, ApiError) else "Lead Sources endpoint not found"
            logger.error(f"[red]❌ Failed to fetch Lead Sources:[/red] {message}")
            return {
                "success": False,
                "lead_sources": {},
                "created": [],
                "errors": [f"Failed to fetch Lead Sources: {message}"],
            }

        source_map = dict(self.config.lead_source_ids)
        for source in existing.value:
            source_map[source.LEAD_SOURCE] = source.LEAD_SOURCE_ID

        created: List[str] = []
        errors: List[str] = []
        for name in LEAD_SOURCES_TO_CREATE:
            if name in source_map:
                continue
            result = await self.create_lead_source(name)
            if isinstance(result, Ok):
                source_map[result.value.LEAD_SOURCE] = result.value.LEAD_SOURCE_ID
                created.append(name)
            else:
                message = result.message if isinstance(result, ApiError) else "not found"
                errors.append(f'Failed to create "{name}": {message}')

        lead_source_registry.update(source_map)
        if created:
            logger.info(f"[green]✅ Created Lead Sources:[/green] {', '.join(created)}")

        return {
            "success": not errors,
            "lead_sources": source_map,
            "created": created,
            "errors": errors,
        }
