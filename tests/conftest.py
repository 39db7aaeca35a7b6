import pytest
from prometheus_client import CollectorRegistry

from remediation_store.config.settings import RemediationConfig
from remediation_store.observability.metrics import RemediationMetrics
from remediation_store.services.remediation_service import RemediationService
from remediation_store.tools.memory_store import InMemoryStore, InMemoryStoreProvider

from tests.factories import StubStore


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    return RemediationMetrics(registry=registry)


@pytest.fixture
def config():
    return RemediationConfig(
        collection_prefix="remediations",
        default_confidence=0.5,
        feedback_delta=0.1,
        min_confidence=0.1,
        max_confidence=1.0,
    )


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def service(memory_store, config, metrics):
    """Service over one shared in-memory store."""
    return RemediationService.with_shared_store(memory_store, config, metrics)


@pytest.fixture
def stub_store():
    return StubStore()


@pytest.fixture
def stub_service(stub_store, config, metrics):
    return RemediationService.with_shared_store(stub_store, config, metrics)


@pytest.fixture(params=["shared", "physical"])
def any_service(request, config, metrics):
    """Service in each isolation strategy over in-memory stores."""
    if request.param == "shared":
        return RemediationService.with_shared_store(InMemoryStore(), config, metrics)
    return RemediationService.with_store_provider(InMemoryStoreProvider(), config, metrics)
