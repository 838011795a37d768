import httpx
import pytest
from starlette.testclient import TestClient

from edit_generator.orchestrator import GenerationOrchestrator
from edit_generator.providers import ProviderRegistry
from tests.conftest import RED_PARTS_RESPONSE, anthropic_message, chat_completion, fake_provider_transport
from transport.http_app import create_app


def _client(env, responses, **app_kwargs):
    registry = ProviderRegistry(environ=env)
    orchestrator = GenerationOrchestrator(registry, timeout=5, transport=fake_provider_transport(responses))
    return TestClient(create_app(registry, orchestrator, **app_kwargs))


@pytest.fixture
def healthy_client(provider_env):
    return _client(provider_env, {"openrouter": httpx.Response(200, json=chat_completion(RED_PARTS_RESPONSE))})


def test_generate_success(healthy_client, scene_payload):
    response = healthy_client.post("/generate", json={"prompt": "make all parts red", "sceneTree": scene_payload})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["providerUsed"] == "OpenRouter"
    assert body["tokensConsumed"] == 42
    assert body["mode"] == "direct_edit"
    assert body["classification"]["deletionRequested"] is False
    assert body["operations"][0]["properties"]["Color"] == {"type": "Color3", "value": "1,0,0"}
    assert body["rejected"] == []


def test_generate_accepts_legacy_game_tree_key(healthy_client, scene_payload):
    response = healthy_client.post(
        "/generate",
        json={"prompt": "make all parts red", "gameTree": scene_payload, "mode": "script_generation"},
    )

    assert response.status_code == 200
    assert response.json()["mode"] == "script_generation"


def test_overlong_prompt_is_rejected(healthy_client, scene_payload):
    response = healthy_client.post("/generate", json={"prompt": "a" * 2001, "sceneTree": scene_payload})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Validation failed"
    assert body["details"][0]["field"] == "prompt"


@pytest.mark.parametrize(
    "payload",
    [
        {"prompt": "make {script} red", "sceneTree": {}},
        {"prompt": "hi", "sceneTree": {}},
        {"prompt": "make all parts red"},
        {"prompt": "make all parts red", "sceneTree": {}, "requestSize": "gigantic"},
        {"prompt": "make all parts red", "sceneTree": {}, "selectedInstances": [{"name": "P", "className": "Part", "path": ["Work|space"]}]},
    ],
)
def test_invalid_generate_payloads(healthy_client, payload):
    response = healthy_client.post("/generate", json=payload)

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_invalid_json_body(healthy_client):
    response = healthy_client.post("/generate", content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json()["details"][0]["message"] == "request body is not valid JSON"


def test_malformed_scene_tree(healthy_client):
    response = healthy_client.post(
        "/generate",
        json={"prompt": "make all parts red", "sceneTree": {"Workspace": {"Children": "nope"}}},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Scene tree is invalid"


def test_oversized_body_is_rejected(provider_env):
    client = _client(provider_env, {}, max_body_bytes=256)

    response = client.post("/generate", json={"prompt": "make all parts red", "sceneTree": {"x": "y" * 1000}})

    assert response.status_code == 413
    assert response.json()["success"] is False


def test_all_providers_failing_returns_502(provider_env):
    client = _client(provider_env, {"anthropic": httpx.Response(500, json={"error": {"message": "overloaded"}})})

    response = client.post("/generate", json={"prompt": "make all parts red", "sceneTree": {}})

    assert response.status_code == 502
    body = response.json()
    assert body["success"] is False
    assert "All AI providers failed" in body["details"]
    assert "overloaded" in body["details"]


def test_fallback_provider_reported(provider_env):
    client = _client(provider_env, {"anthropic": httpx.Response(200, json=anthropic_message(RED_PARTS_RESPONSE))})

    response = client.post("/generate", json={"prompt": "make all parts red", "sceneTree": {}})

    assert response.status_code == 200
    assert response.json()["providerUsed"] == "Anthropic Claude"


def test_analyze(healthy_client, scene_payload):
    response = healthy_client.post("/analyze", json={"prompt": "when the button is clicked open the door", "sceneTree": scene_payload})

    assert response.status_code == 200
    body = response.json()
    assert body["recommendedMode"] == "script_generation"
    assert body["sceneNodes"] == 9
    assert body["contextLength"] > 0


def test_provider_info_and_switch(healthy_client):
    info = healthy_client.get("/provider/info").json()
    assert info["name"] == "OpenRouter"

    switched = healthy_client.post("/provider/switch", json={"provider": "openai"})
    assert switched.status_code == 200
    assert switched.json()["provider"] == "OpenAI"

    info = healthy_client.get("/provider/info").json()
    assert info["name"] == "OpenAI"
    assert [p["kind"] for p in info["available"]] == ["openrouter", "anthropic"]


def test_switch_to_unavailable_provider(healthy_client):
    response = healthy_client.post("/provider/switch", json={"provider": "google"})

    assert response.status_code == 400
    body = response.json()
    assert body == {
        "success": False,
        "error": "Failed to switch provider",
        "details": "API key not found for Google Gemini. Please set GOOGLE_API_KEY",
    }
    assert healthy_client.get("/provider/info").json()["name"] == "OpenRouter"


def test_provider_test_endpoint(healthy_client):
    ok = healthy_client.get("/provider/test")
    failed = healthy_client.get("/provider/test", params={"provider": "openai"})

    assert ok.status_code == 200
    assert ok.json()["provider"] == "OpenRouter"
    assert failed.status_code == 502
    assert failed.json()["success"] is False


def test_health(healthy_client):
    body = healthy_client.get("/health").json()

    assert body["status"] == "healthy"
    assert body["providers"] == ["openrouter", "openai", "anthropic"]
