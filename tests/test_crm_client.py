"""
Insightly client: auth header, retries and error classification
"""
import base64

import httpx
import pytest

from mediation_intake.core.config import InsightlyConfig, InsightlyRetryConfig
from mediation_intake.external.crm.client import InsightlyClient, build_auth_header, classify_status
from mediation_intake.external.crm.models import ApiError, NotFound, Ok
from mediation_intake.utils.exceptions import CRMAPIError, CRMErrorKind


def test_auth_header_is_basic_with_empty_password():
    header = build_auth_header("abc123")

    assert header == "Basic " + base64.b64encode(b"abc123:").decode()


@pytest.mark.parametrize(
    "status, kind",
    [
        (401, CRMErrorKind.AUTH),
        (403, CRMErrorKind.AUTH),
        (429, CRMErrorKind.RATE_LIMIT),
        (400, CRMErrorKind.CLIENT),
        (422, CRMErrorKind.CLIENT),
        (500, CRMErrorKind.SERVER),
        (503, CRMErrorKind.SERVER),
    ],
)
def test_status_classification(status, kind):
    assert classify_status(status) == kind


@pytest.mark.asyncio
async def test_rate_limit_is_retried_then_succeeds(crm_client, insightly):
    insightly.fail("create_lead", 429, times=2, headers={"Retry-After": "1"})

    result = await crm_client.create_lead({"FIRST_NAME": "Jane", "LAST_NAME": "Doe", "LEAD_DESCRIPTION": "x"})

    assert isinstance(result, Ok)
    assert insightly.calls["create_lead"] == 3


@pytest.mark.asyncio
async def test_rate_limit_gives_up_after_max_retries(crm_client, insightly):
    insightly.fail("search_leads", 429, times=5)

    result = await crm_client.search_leads("Jane", "Doe")

    assert isinstance(result, ApiError)
    assert result.kind == CRMErrorKind.RATE_LIMIT
    assert result.user_message == "Insightly rate limit exceeded. Please try again later."
    # max_retries=2 in the test config
    assert insightly.calls["search_leads"] == 3


@pytest.mark.asyncio
async def test_network_errors_are_retried_and_classified():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client = InsightlyClient(transport=httpx.MockTransport(handler))

    with pytest.raises(CRMAPIError) as exc_info:
        await client.request("GET", "Leads")

    assert exc_info.value.kind == CRMErrorKind.NETWORK
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_missing_api_key_is_not_configured():
    config = InsightlyConfig(api_url="https://insightly.test/v3.1", api_key=None, retry=InsightlyRetryConfig(initial_delay=0))
    client = InsightlyClient(config=config, transport=httpx.MockTransport(lambda r: httpx.Response(200, json=[])))

    result = await client.search_leads("Jane", "Doe")

    assert isinstance(result, ApiError)
    assert result.kind == CRMErrorKind.NOT_CONFIGURED
    assert result.user_message == "Insightly API key is not configured"


@pytest.mark.asyncio
async def test_error_message_prefers_json_message(crm_client, insightly):
    insightly.fail("create_case", 400, body={"message": "PIPELINE_ID is invalid"})

    result = await crm_client.create_case({"OPPORTUNITY_NAME": "x"})

    assert isinstance(result, ApiError)
    assert result.kind == CRMErrorKind.CLIENT
    assert result.status == 400
    assert "PIPELINE_ID is invalid" in result.message


@pytest.mark.asyncio
async def test_invalid_json_is_invalid_response():
    client = InsightlyClient(
        transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>maintenance</html>"))
    )

    with pytest.raises(CRMAPIError) as exc_info:
        await client.request("GET", "Leads")

    assert exc_info.value.kind == CRMErrorKind.INVALID_RESPONSE


@pytest.mark.asyncio
async def test_create_lead_without_id_is_invalid_response():
    client = InsightlyClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"FIRST_NAME": "Jane"})))

    result = await client.create_lead({"FIRST_NAME": "Jane"})

    assert isinstance(result, ApiError)
    assert result.kind == CRMErrorKind.INVALID_RESPONSE


@pytest.mark.asyncio
async def test_get_missing_lead_is_not_found(crm_client):
    result = await crm_client.get_lead(424242)

    assert isinstance(result, NotFound)


@pytest.mark.asyncio
async def test_email_search_takes_precedence(crm_client, insightly):
    insightly.add_lead("Jane", "Doe", email="jane@example.com")

    result = await crm_client.search_leads("Someone", "Else", email="jane@example.com")

    assert isinstance(result, Ok)
    assert [lead.EMAIL for lead in result.value] == ["jane@example.com"]
    params = insightly.requests[-1].url.params
    assert params["email"] == "jane@example.com"
    assert "first_name" not in params
    assert params["brief"] == "false"


@pytest.mark.asyncio
async def test_search_without_terms_makes_no_request(crm_client, insightly):
    result = await crm_client.search_leads()

    assert result == Ok([])
    assert insightly.requests == []


@pytest.mark.asyncio
async def test_timed_out_lead_create_is_not_resent(insightly):
    def handler(request: httpx.Request) -> httpx.Response:
        response = insightly.handler(request)
        if request.method == "POST" and request.url.path.endswith("/Leads"):
            raise httpx.ReadTimeout("read timed out", request=request)
        return response

    client = InsightlyClient(transport=httpx.MockTransport(handler))

    result = await client.create_lead({"FIRST_NAME": "Jane", "LAST_NAME": "Doe", "LEAD_DESCRIPTION": "x"})

    assert isinstance(result, ApiError)
    assert result.kind == CRMErrorKind.NETWORK
    assert insightly.calls["create_lead"] == 1
    assert len(insightly.leads) == 1


@pytest.mark.asyncio
async def test_lead_create_is_resent_after_connect_error(insightly):
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return insightly.handler(request)

    client = InsightlyClient(transport=httpx.MockTransport(handler))

    result = await client.create_lead({"FIRST_NAME": "Jane", "LAST_NAME": "Doe", "LEAD_DESCRIPTION": "x"})

    assert isinstance(result, Ok)
    assert len(attempts) == 2
    assert len(insightly.leads) == 1
