"""
Test configuration and fixtures.

Provides:
- SQLite in-memory database, recreated for every test
- JWT token minting for authenticated requests
- Fake Insightly, Monday, Calendly and Resend APIs served through httpx.MockTransport
- HTTPX AsyncClient over the ASGI app with dependency overrides
"""
import base64
import json
import os
import re
from pathlib import Path
from typing import Any, AsyncGenerator, Callable, Dict, Generator, List, Optional

# Settings are loaded at import time
os.environ["MEDIATION_INTAKE_CONFIG"] = str(Path(__file__).parent / "config.test.yaml")

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from mediation_intake.core.dependencies import (
    get_calendly_client,
    get_db,
    get_insightly_client,
    get_monday_client,
    get_notification_service,
)
from mediation_intake.core.security import CurrentUser, UserRole, create_access_token
from mediation_intake.database.connection import DatabasePool
from mediation_intake.database.models.base import Base
from mediation_intake.database.session import get_session, init_db, init_session_factory
from mediation_intake.external.calendly.client import CalendlyClient
from mediation_intake.external.crm.client import InsightlyClient
from mediation_intake.external.crm.insightly import lead_source_registry
from mediation_intake.external.email.resend import ResendClient
from mediation_intake.external.monday.client import MondayClient
from mediation_intake.main import app
from mediation_intake.services.notification_service import NotificationService


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def database() -> Generator[None, None, None]:
    DatabasePool.initialize()
    init_session_factory()
    init_db()
    yield
    DatabasePool.close()


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh tables for every test"""
    engine = DatabasePool.get_engine()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = get_session()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def reset_lead_sources() -> Generator[None, None, None]:
    lead_source_registry.clear()
    yield
    lead_source_registry.clear()


# =============================================================================
# Auth Fixtures
# =============================================================================

@pytest.fixture
def coordinator() -> CurrentUser:
    return CurrentUser(uid="staff-1", email="coord@mcrc.test", name="Casey Coordinator", role=UserRole.COORDINATOR)


@pytest.fixture
def auth_headers() -> Callable[..., Dict[str, str]]:
    """Build an Authorization header for a role"""
    def _headers(role: str = "coordinator", uid: str = "staff-1", name: str = "Casey Coordinator") -> Dict[str, str]:
        token = create_access_token(uid=uid, role=role, email=f"{uid}@mcrc.test", name=name)
        return {"Authorization": f"Bearer {token}"}
    return _headers


# =============================================================================
# Fake Insightly
# =============================================================================

class FakeInsightly:
    """
    In-memory Insightly API.

    Use fail(route, status) to make the next call(s) of a route fail, and
    calls[route] to count what the code under test sent.
    """

    API_KEY = "test-insightly-key"

    ROUTES = [
        ("GET", re.compile(r"^/v3\.1/Leads$"), "search_leads"),
        ("GET", re.compile(r"^/v3\.1/Leads/(\d+)$"), "get_lead"),
        ("POST", re.compile(r"^/v3\.1/Leads$"), "create_lead"),
        ("POST", re.compile(r"^/v3\.1/Leads/(\d+)/Notes$"), "add_note"),
        ("POST", re.compile(r"^/v3\.1/Opportunities$"), "create_case"),
        ("POST", re.compile(r"^/v3\.1/Opportunities/(\d+)/Links$"), "link_case"),
        ("GET", re.compile(r"^/v3\.1/LeadSources$"), "list_sources"),
        ("POST", re.compile(r"^/v3\.1/LeadSources$"), "create_source"),
    ]

    def __init__(self):
        self.leads: Dict[int, Dict[str, Any]] = {}
        self.cases: Dict[int, Dict[str, Any]] = {}
        self.links: List[Dict[str, Any]] = []
        self.notes: List[Dict[str, Any]] = []
        self.lead_sources: List[Dict[str, Any]] = []
        self.reject_lead_names: set = set()
        self.calls: Dict[str, int] = {}
        self.requests: List[httpx.Request] = []
        self._failures: Dict[str, List[httpx.Response]] = {}
        self._next_id = 1000

    def next_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def add_lead(self, first_name: str, last_name: str, email: Optional[str] = None,
                 phone: Optional[str] = None, lead_id: Optional[int] = None, **extra) -> int:
        lead_id = lead_id or self.next_id()
        self.leads[lead_id] = {
            "LEAD_ID": lead_id,
            "FIRST_NAME": first_name,
            "LAST_NAME": last_name,
            "EMAIL": email,
            "PHONE": phone,
            "DATE_CREATED_UTC": "2023-03-01 12:00:00",
            **extra,
        }
        return lead_id

    def fail(self, route: str, status: int, times: int = 1, body: Any = None,
             headers: Optional[Dict[str, str]] = None) -> None:
        body = body if body is not None else {"message": f"Injected {status} failure"}
        responses = self._failures.setdefault(route, [])
        for _ in range(times):
            responses.append(httpx.Response(status, json=body, headers=headers))

    def _route(self, request: httpx.Request):
        for method, pattern, name in self.ROUTES:
            match = pattern.match(request.url.path)
            if request.method == method and match:
                return name, match.groups()
        return None, ()

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        expected = "Basic " + base64.b64encode(f"{self.API_KEY}:".encode()).decode()
        if request.headers.get("Authorization") != expected:
            return httpx.Response(401, json={"message": "Invalid API key"})

        name, groups = self._route(request)
        if name is None:
            return httpx.Response(404, json={"message": "Not found"})
        self.calls[name] = self.calls.get(name, 0) + 1

        if self._failures.get(name):
            return self._failures[name].pop(0)

        body = json.loads(request.content) if request.content else None
        return getattr(self, f"_{name}")(request, body, *groups)

    def _search_leads(self, request, body):
        params = request.url.params
        results = []
        for lead in self.leads.values():
            if "email" in params:
                if (lead.get("EMAIL") or "").lower() == params["email"].lower():
                    results.append(lead)
                continue
            first = params.get("first_name")
            last = params.get("last_name")
            if first and (lead.get("FIRST_NAME") or "").lower() != first.lower():
                continue
            if last and (lead.get("LAST_NAME") or "").lower() != last.lower():
                continue
            results.append(lead)
        return httpx.Response(200, json=results)

    def _get_lead(self, request, body, lead_id):
        lead = self.leads.get(int(lead_id))
        if lead is None:
            return httpx.Response(404, json={"message": "Lead not found"})
        return httpx.Response(200, json=lead)

    def _create_lead(self, request, body):
        if body.get("FIRST_NAME") in self.reject_lead_names:
            return httpx.Response(503, json={"message": "Service unavailable"})
        lead_id = self.next_id()
        self.leads[lead_id] = {**body, "LEAD_ID": lead_id}
        return httpx.Response(200, json=self.leads[lead_id])

    def _add_note(self, request, body, lead_id):
        self.notes.append({"lead_id": int(lead_id), **body})
        return httpx.Response(200, json={"NOTE_ID": self.next_id(), **body})

    def _create_case(self, request, body):
        case_id = self.next_id()
        self.cases[case_id] = {**body, "OPPORTUNITY_ID": case_id}
        return httpx.Response(200, json=self.cases[case_id])

    def _link_case(self, request, body, case_id):
        self.links.append({"case_id": int(case_id), **body})
        return httpx.Response(200, json={"LINK_ID": self.next_id(), **body})

    def _list_sources(self, request, body):
        return httpx.Response(200, json=self.lead_sources)

    def _create_source(self, request, body):
        source = {"LEAD_SOURCE_ID": self.next_id(), "LEAD_SOURCE": body["LEAD_SOURCE"]}
        self.lead_sources.append(source)
        return httpx.Response(200, json=source)


@pytest.fixture
def insightly() -> FakeInsightly:
    return FakeInsightly()


@pytest.fixture
def crm_client(insightly: FakeInsightly) -> InsightlyClient:
    return InsightlyClient(transport=httpx.MockTransport(insightly.handler))


# =============================================================================
# Fake Resend / Monday / Calendly
# =============================================================================

class FakeResend:
    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.status = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.status >= 400:
            return httpx.Response(self.status, json={"message": "Resend is down"})
        payload = json.loads(request.content)
        self.sent.append(payload)
        return httpx.Response(200, json={"id": f"email-{len(self.sent)}"})


@pytest.fixture
def resend() -> FakeResend:
    return FakeResend()


@pytest.fixture
def notifications(resend: FakeResend) -> NotificationService:
    client = ResendClient(transport=httpx.MockTransport(resend.handler))
    return NotificationService(email_client=client)


class FakeMonday:
    def __init__(self):
        self.items: Dict[str, Dict[str, Any]] = {}
        self.queries: List[Dict[str, Any]] = []
        self.errors: List[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.queries.append(body)
        if self.errors:
            return httpx.Response(200, json={"errors": [{"message": self.errors.pop(0)}]})

        variables = body.get("variables") or {}
        if "create_item" in body["query"]:
            item_id = str(5000000000 + len(self.items) + 1)
            self.items[item_id] = {
                "id": item_id,
                "name": variables["itemName"],
                "group": variables["groupId"],
                "column_values": json.loads(variables["columnValues"]),
            }
            return httpx.Response(200, json={"data": {"create_item": {"id": item_id}}})

        items = [
            {"id": item_id, "name": self.items[item_id]["name"]}
            for item_id in variables.get("itemIds", [])
            if item_id in self.items
        ]
        return httpx.Response(200, json={"data": {"items": items}})


@pytest.fixture
def monday() -> FakeMonday:
    return FakeMonday()


@pytest.fixture
def monday_client(monday: FakeMonday) -> MondayClient:
    return MondayClient(transport=httpx.MockTransport(monday.handler))


class FakeCalendly:
    def __init__(self):
        self.token_requests: List[Dict[str, str]] = []
        self.fail_refresh = False
        self._issued = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        form = dict(httpx.QueryParams(request.content.decode()))
        self.token_requests.append(form)
        if form.get("grant_type") == "refresh_token" and self.fail_refresh:
            return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Refresh token revoked"})
        if form.get("grant_type") == "authorization_code" and form.get("code") != "good-code":
            return httpx.Response(400, json={"error": "invalid_grant"})
        self._issued += 1
        return httpx.Response(200, json={
            "access_token": f"access-{self._issued}",
            "refresh_token": f"refresh-{self._issued}",
            "expires_in": 7200,
            "token_type": "Bearer",
            "scope": "default",
            "owner": "https://api.calendly.com/users/ABC",
        })


@pytest.fixture
def calendly() -> FakeCalendly:
    return FakeCalendly()


@pytest.fixture
def calendly_client(calendly: FakeCalendly) -> CalendlyClient:
    return CalendlyClient(transport=httpx.MockTransport(calendly.handler))


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture
async def client(
    db: Session,
    crm_client: InsightlyClient,
    notifications: NotificationService,
    monday_client: MondayClient,
    calendly_client: CalendlyClient,
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient over the app with every integration faked"""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_insightly_client] = lambda: crm_client
    app.dependency_overrides[get_notification_service] = lambda: notifications
    app.dependency_overrides[get_monday_client] = lambda: monday_client
    app.dependency_overrides[get_calendly_client] = lambda: calendly_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as c:
        yield c

    app.dependency_overrides.clear()


# =============================================================================
# Payloads
# =============================================================================

@pytest.fixture
def intake_payload() -> Dict[str, Any]:
    """Complete paper intake as the data entry wizard submits it"""
    return {
        "caseNumber": "2023FM0042",
        "intakeDate": "2023-03-14",
        "intakePerson": "R. Alvarez",
        "paperFormId": "box-3/folder-12",
        "batchId": "2024-batch-1",
        "referralSource": "District Court",
        "isCourtOrdered": True,
        "magistrateJudge": "Judge Patel",
        "disputeType": "Neighbor",
        "disputeDescription": "Fence line and drainage disagreement between neighbors.",
        "participant1": {
            "name": "Jane Doe",
            "email": "jane@example.com",
            "phone": "(410) 555-0100",
            "address": {"street": "12 Oak St", "city": "Columbia", "state": "MD", "zipCode": "21044"},
            "canSendJointEmail": True,
            "bestCallTime": "Evenings",
            "demographics": {"gender": "Female", "ageRange": "35-44"},
        },
        "hasParticipant2": False,
        "phoneChecklist": {
            "explainedProcess": True,
            "explainedNeutrality": True,
            "explainedConfidentiality": True,
            "policeInvolvement": False,
            "peaceProtectiveOrder": False,
            "safetyScreeningComplete": True,
        },
        "staffAssessment": {
            "canRepresentSelf": True,
            "noFearOfCoercion": True,
            "noDangerToSelf": True,
            "noDangerToCenter": True,
        },
        "staffNotes": "Prefers morning sessions.",
    }


@pytest.fixture
def second_participant() -> Dict[str, Any]:
    return {
        "name": "John Roe",
        "email": "john.roe@example.com",
        "homePhone": "410-555-0199",
    }
