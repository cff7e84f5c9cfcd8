import os
import pytest
from fastapi.testclient import TestClient
from dotenv import load_dotenv
from unittest.mock import AsyncMock

# Load the test environment FIRST, before any armelle imports, so the settings
# module sees it when it is instantiated.
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), "..", ".env.test"))
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("USE_IN_MEMORY_STORE", "true")

# Now it's safe to import the application and its components
from armelle.main import app  # noqa: E402
from armelle.models.taxpayer import Taxpayer  # noqa: E402
from armelle.models.workflow import END, ConditionalNext, StepDefinition, ValidationRule, WorkflowDefinition  # noqa: E402
from armelle.services.dgi_service import DGIService  # noqa: E402
from armelle.workflows.actions import ActionRegistry  # noqa: E402
from armelle.workflows.engine import WorkflowExecutor  # noqa: E402
from armelle.workflows.registry import WorkflowRegistry  # noqa: E402


@pytest.fixture
def survey_definition():
    """A small workflow exercising input, choice, service and message steps."""
    return WorkflowDefinition(
        id="survey",
        name_key="Survey",
        start_step_id="ask_name",
        steps=[
            StepDefinition(
                id="ask_name",
                kind="input",
                prompt_key="What is your name?",
                validation=ValidationRule(kind="name", min_length=2, max_length=50),
                next="ask_age",
            ),
            StepDefinition(
                id="ask_age",
                kind="input",
                prompt_key="How old are you?",
                validation=ValidationRule(kind="number", min=1, max=120),
                next=[
                    ConditionalNext(condition="ask_age >= 18", target="pick_plan"),
                    ConditionalNext(condition="default", target="too_young"),
                ],
            ),
            StepDefinition(
                id="pick_plan",
                kind="choice",
                prompt_key="Pick a plan",
                choices=[
                    {"id": "basic", "label_key": "Basic"},
                    {"id": "pro", "label_key": "Pro", "value": "professional"},
                ],
                next="register",
            ),
            StepDefinition(
                id="register",
                kind="service",
                prompt_key="Registering...",
                action="register",
                params={"name": "{{ask_name}}", "plan": "{{pick_plan}}", "source": "test"},
                next="thanks",
            ),
            StepDefinition(
                id="too_young",
                kind="message",
                prompt_key="Sorry, you are too young.",
                next=END,
            ),
            StepDefinition(
                id="thanks",
                kind="message",
                prompt_key="Thanks {{ask_name}}!",
                next=END,
            ),
        ],
    )


@pytest.fixture
def workflow_registry(survey_definition):
    registry = WorkflowRegistry()
    registry.register(survey_definition)
    return registry


@pytest.fixture
def action_registry():
    actions = ActionRegistry()
    actions.register("survey", "register", AsyncMock(return_value={"success": True, "data": {"member_id": 42}}))
    return actions


@pytest.fixture
def executor(workflow_registry, action_registry):
    return WorkflowExecutor(workflow_registry, action_registry, max_auto_steps=25, history_limit=50)


@pytest.fixture
def taxpayers():
    return [
        Taxpayer(niu="P012345678901A", name="MBARGA", first_name="Paul", center="CIME Yaoundé"),
        Taxpayer(niu="P098765432109B", name="MBARGA", first_name="Pauline", center="CDI Douala"),
    ]


@pytest.fixture
def mock_dgi_service(mocker):
    """A DGIService whose network methods are mocks."""
    service = mocker.MagicMock(spec=DGIService)
    service.search = AsyncMock(return_value=[])
    service.verify = AsyncMock(return_value=None)
    return service


@pytest.fixture(scope="function")
def test_client(mocker):
    """
    Provides a TestClient for API integration tests.
    The DGI client is mocked so no request leaves the process.
    """
    mocker.patch("armelle.services.dgi_service.DGIService.search", new_callable=AsyncMock, return_value=[])
    mocker.patch("armelle.services.dgi_service.DGIService.verify", new_callable=AsyncMock, return_value=None)

    # The app's lifespan (startup/shutdown events) is managed by the TestClient
    with TestClient(app) as client:
        yield client
