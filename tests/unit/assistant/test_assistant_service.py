import pytest
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.runnables import RunnableLambda

from app.modules.assistant.domain.classifier import QueryClassifier
from app.modules.assistant.domain.context import ContextAssembler
from app.modules.assistant.domain.factory import build_assistant
from app.modules.assistant.domain.responder import NarrativeResponder
from app.modules.assistant.domain.service import AssistantService
from app.modules.inventory.domain.service import ScanOrchestrator
from app.modules.reporting.domain.cost_fetcher import CostFetcher

NOW = datetime(2025, 6, 10, tzinfo=timezone.utc)


@pytest.fixture
def audit_logger():
    audit = MagicMock()
    audit.record = AsyncMock()
    return audit


@pytest.fixture
def service(aws_provider, audit_logger):
    orchestrator = ScanOrchestrator(aws_provider, clock=lambda: NOW)
    assembler = ContextAssembler(
        classifier=QueryClassifier(clock=lambda: NOW),
        orchestrator=orchestrator,
        cost_fetcher=CostFetcher(aws_provider, clock=lambda: NOW),
        clock=lambda: NOW,
    )
    return AssistantService(
        assembler=assembler,
        responder=NarrativeResponder(FakeListChatModel(responses=["Compute cost $42.10."])),
        orchestrator=orchestrator,
        audit_logger=audit_logger,
    )


@pytest.mark.asyncio
async def test_compute_cost_question_end_to_end(service, aws_clients, audit_logger):
    aws_clients["ce"].get_cost_and_usage.return_value = {
        "ResultsByTime": [
            {
                "TimePeriod": {"Start": "2025-05-01", "End": "2025-06-01"},
                "Total": {"UnblendedCost": {"Amount": "42.10", "Unit": "USD"}},
                "Estimated": False,
            }
        ]
    }

    result = await service.answer("what is our compute cost", client_id="client-7")

    kwargs = aws_clients["ce"].get_cost_and_usage.await_args.kwargs
    assert kwargs["Filter"]["Dimensions"]["Values"] == ["Amazon Elastic Compute Cloud - Compute"]
    assert result.answer == "Compute cost $42.10."
    assert Decimal(result.inventory["costs"][0]["amount"]) == Decimal("42.10")
    assert result.inventory["compute"] == []
    assert result.inventory["storage"] == []
    assert result.inventory["database"] == []
    assert "load_balancers" not in result.inventory
    for service_name in ("ec2", "s3", "rds", "elbv2", "cloudwatch"):
        assert service_name not in aws_clients

    audit_logger.record.assert_awaited_once()
    recorded = audit_logger.record.await_args.kwargs
    assert recorded["client_id"] == "client-7"
    assert recorded["metadata"] == {
        "domains": ["cost"],
        "errors": [],
        "llm_failed": False,
        "cost_scope": "compute",
    }


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "   "])
async def test_empty_query_rejected_before_any_call(service, aws_clients, query):
    with pytest.raises(ValueError):
        await service.answer(query)
    assert not aws_clients


@pytest.mark.asyncio
async def test_audit_failure_does_not_change_answer(service, aws_clients, audit_logger):
    audit_logger.record.side_effect = RuntimeError("database is locked")
    aws_clients["s3"].list_buckets.return_value = {"Buckets": []}

    result = await service.answer("how many buckets?")

    assert result.answer == "Compute cost $42.10."
    assert result.inventory["storage"] == []


@pytest.mark.asyncio
async def test_scan_inventory_returns_full_snapshot(service, aws_clients):
    aws_clients["ec2"].describe_instances.return_value = {"Reservations": []}
    aws_clients["s3"].list_buckets.return_value = {"Buckets": []}
    aws_clients["rds"].describe_db_instances.return_value = {"DBInstances": []}
    aws_clients["elbv2"].describe_load_balancers.side_effect = RuntimeError("endpoint down")

    snapshot = await service.scan_inventory()

    assert snapshot.captured_at == NOW
    assert snapshot.get(snapshot.kinds[0]) == []
    assert set(snapshot.to_payload()["errors"]) == {"load_balancers"}


def test_build_assistant_wires_collaborators(settings, aws_provider):
    llm = FakeListChatModel(responses=["ok"])
    session_maker = MagicMock()

    service = build_assistant(settings, provider=aws_provider, llm=llm, session_maker=session_maker)

    assert service.provider is aws_provider
    assert service.responder.llm is llm
    assert service.audit_logger.session_maker is session_maker
    assert service.assembler.cost_fetcher.provider is aws_provider


def test_build_assistant_without_audit(settings, aws_provider):
    quiet = settings.model_copy(update={"AUDIT_ENABLED": False})

    service = build_assistant(quiet, provider=aws_provider, llm=FakeListChatModel(responses=["ok"]))

    assert service.audit_logger is None


@pytest.mark.asyncio
async def test_backend_failure_code_is_audited(aws_provider, aws_clients, audit_logger):
    def _boom(_prompt_value):
        raise RuntimeError("model overloaded")

    orchestrator = ScanOrchestrator(aws_provider, clock=lambda: NOW)
    service = AssistantService(
        assembler=ContextAssembler(
            classifier=QueryClassifier(clock=lambda: NOW),
            orchestrator=orchestrator,
            cost_fetcher=CostFetcher(aws_provider, clock=lambda: NOW),
            clock=lambda: NOW,
        ),
        responder=NarrativeResponder(RunnableLambda(_boom)),
        orchestrator=orchestrator,
        audit_logger=audit_logger,
    )
    aws_clients["s3"].list_buckets.return_value = {"Buckets": []}

    result = await service.answer("how many buckets?")

    assert result.error == "model overloaded"
    assert result.error_code == "llm_backend_failed"
    metadata = audit_logger.record.await_args.kwargs["metadata"]
    assert metadata["llm_failed"] is True
    assert metadata["error_code"] == "llm_backend_failed"


@pytest.mark.asyncio
async def test_verify_connections_uses_responder_model(service, aws_clients):
    aws_clients["sts"].get_caller_identity.return_value = {"Account": "123456789012"}

    results = await service.verify_connections()

    assert results["aws"]["success"] is True
    assert results["llm"] == {"success": True, "response": "Compute cost $42.10."}
