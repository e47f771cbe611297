"""Shared test fixtures for the Posture test suite."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from posture.app import create_app
from posture.config import Settings
from posture.database import Database
from posture.models import (
    Assessment,
    BaselineEntry,
    CapabilityCentre,
    CategoryLevel,
    ComplianceStatus,
    CsfControl,
    Framework,
    Product,
    System,
)
from posture.services.recompute import RecomputeOrchestrator

C = ComplianceStatus.COMPLIANT
P = ComplianceStatus.PARTIALLY_COMPLIANT
N = ComplianceStatus.NON_COMPLIANT


def _test_settings() -> Settings:
    """Return settings suitable for testing."""
    return Settings(
        environment="development",
        debug=True,
        log_format="console",
        rate_limit_default="1000/minute",
        allowed_origins="http://localhost:3000,http://localhost:5015",
        database_url="sqlite://",
    )


@pytest.fixture
def settings():
    """Test settings."""
    return _test_settings()


@pytest.fixture
def database(settings):
    """An isolated in-memory database with the schema created."""
    db = Database(settings.database_url)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def session(database):
    """A session on the test database."""
    s = database.session()
    yield s
    s.close()


@pytest.fixture
def orchestrator(session):
    """Recompute orchestrator bound to the test session."""
    return RecomputeOrchestrator(session)


@pytest.fixture
def app(settings, database):
    """Create a fresh FastAPI app for testing."""
    return create_app(settings, database)


@pytest.fixture
def client(app):
    """HTTP test client."""
    return TestClient(app)


@pytest.fixture
def hierarchy(session):
    """Seed two capability centres, their frameworks, products and systems.

    EMEA
      Payments
        Checkout (HIGH): Checkout API (CRITICAL), Checkout Worker (LOW)
        Ledger (MEDIUM): Ledger DB (MEDIUM)
      Identity (no products)
    APAC
      Retail
        Point of Sale (CRITICAL): POS Terminal (HIGH)
    Sandbox (no framework): Lab (MEDIUM)
    """
    session.add_all([
        CapabilityCentre(id="cc-emea", name="EMEA"),
        CapabilityCentre(id="cc-apac", name="APAC"),
    ])
    session.flush()
    session.add_all([
        Framework(id="fw-payments", name="Payments", capability_centre_id="cc-emea"),
        Framework(id="fw-identity", name="Identity", capability_centre_id="cc-emea"),
        Framework(id="fw-retail", name="Retail", capability_centre_id="cc-apac"),
    ])
    session.flush()
    session.add_all([
        Product(id="prod-checkout", name="Checkout", criticality="HIGH", framework_id="fw-payments"),
        Product(id="prod-ledger", name="Ledger", criticality="MEDIUM", framework_id="fw-payments"),
        Product(id="prod-pos", name="Point of Sale", criticality="CRITICAL", framework_id="fw-retail"),
        Product(id="prod-sandbox", name="Sandbox", criticality="LOW", framework_id=None),
    ])
    session.flush()
    session.add_all([
        System(id="sys-api", name="Checkout API", criticality="CRITICAL", product_id="prod-checkout"),
        System(id="sys-worker", name="Checkout Worker", criticality="LOW", product_id="prod-checkout"),
        System(id="sys-ledger-db", name="Ledger DB", criticality="MEDIUM", product_id="prod-ledger"),
        System(id="sys-pos", name="POS Terminal", criticality="HIGH", product_id="prod-pos"),
        System(id="sys-lab", name="Lab", criticality="MEDIUM", product_id="prod-sandbox"),
    ])
    session.add_all([
        CsfControl(control_id="GV.OC-01", function_code="GV", category_code="GV.OC", title="Mission"),
        CsfControl(control_id="ID.AM-01", function_code="ID", category_code="ID.AM", title="Hardware inventory"),
        CsfControl(control_id="PR.AA-01", function_code="PR", category_code="PR.AA", title="Identities managed"),
        CsfControl(control_id="PR.DS-01", function_code="PR", category_code="PR.DS", title="Data at rest"),
        CsfControl(control_id="DE.CM-01", function_code="DE", category_code="DE.CM", title="Networks monitored"),
        CsfControl(control_id="RS.MA-01", function_code="RS", category_code="RS.MA", title="Incident plan"),
        CsfControl(control_id="RC.RP-01", function_code="RC", category_code="RC.RP", title="Recovery plan"),
    ])
    session.commit()
    return SimpleNamespace(
        centres=["cc-emea", "cc-apac"],
        frameworks=["fw-payments", "fw-identity", "fw-retail"],
        products=["prod-checkout", "prod-ledger", "prod-pos", "prod-sandbox"],
        systems=["sys-api", "sys-worker", "sys-ledger-db", "sys-pos", "sys-lab"],
    )


@pytest.fixture
def assess(session):
    """Factory: record ``{control_id: status}`` assessments on a system.

    Returns a dict of control id to assessment id. Snapshots are not touched.
    """
    def _assess(system_id: str, statuses: dict[str, ComplianceStatus]) -> dict[str, str]:
        rows = [Assessment(system_id=system_id, control_id=c, status=s) for c, s in statuses.items()]
        session.add_all(rows)
        session.commit()
        return {row.control_id: row.id for row in rows}
    return _assess


@pytest.fixture
def baseline(session):
    """Factory: add applicable baseline entries ``{control_id: category_level}`` to a product."""
    def _baseline(product_id: str, levels: dict[str, CategoryLevel], applicable: bool = True) -> None:
        session.add_all([
            BaselineEntry(product_id=product_id, control_id=c, category_level=level, applicable=applicable)
            for c, level in levels.items()
        ])
        session.commit()
    return _baseline


@pytest.fixture
def scored_checkout(hierarchy, assess):
    """Assessments giving Checkout API 80 and Checkout Worker 40 once recomputed."""
    api = assess("sys-api", {
        "GV.OC-01": C, "ID.AM-01": C, "PR.AA-01": C, "PR.DS-01": C, "DE.CM-01": N,
    })
    worker = assess("sys-worker", {
        "GV.OC-01": C, "ID.AM-01": C, "PR.AA-01": N, "RS.MA-01": N, "RC.RP-01": N,
    })
    return SimpleNamespace(api=api, worker=worker)
