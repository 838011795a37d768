"""Pytest configuration for edit-assistant tests."""
import json
import sys
from pathlib import Path

import httpx
import pytest

# Add src directory to Python path so tests can import edit_generator, transport, etc.
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

PROVIDER_HOSTS = {
    "openrouter.ai": "openrouter",
    "api.openai.com": "openai",
    "api.anthropic.com": "anthropic",
    "generativelanguage.googleapis.com": "google",
}


@pytest.fixture
def provider_env():
    """Credentials for three of the four providers (Google left unset)."""
    return {
        "OPENROUTER_API_KEY": "sk-or-test",
        "OPENAI_API_KEY": "sk-openai-test",
        "ANTHROPIC_API_KEY": "sk-ant-test",
    }


@pytest.fixture
def scene_payload():
    return {
        "Workspace": {
            "ClassName": "Workspace",
            "Name": "Workspace",
            "Children": [
                {"ClassName": "Part", "Name": "Baseplate", "Properties": {"Anchored": True, "Size": "512,20,512"}},
                {"ClassName": "Part", "Name": "Part1", "Properties": {"Position": "0,5,0"}},
                {
                    "ClassName": "Model",
                    "Name": "House",
                    "Children": [
                        {"ClassName": "Part", "Name": "Door"},
                        {"ClassName": "Part", "Name": "Roof"},
                    ],
                },
                {"ClassName": "SpawnLocation", "Name": "SpawnLocation"},
            ],
        },
        "ServerScriptService": {
            "ClassName": "ServerScriptService",
            "Name": "ServerScriptService",
            "Children": [
                {"ClassName": "Script", "Name": "GameLoop", "Properties": {"Source": "while true do\n  wait(1)\nend"}},
            ],
        },
    }


def chat_completion(content, total_tokens=42):
    return {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"total_tokens": total_tokens},
    }


def anthropic_message(content, input_tokens=10, output_tokens=20):
    return {
        "content": [{"type": "text", "text": content}],
        "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
    }


def fake_provider_transport(responses, calls=None):
    """Build an httpx.MockTransport answering per provider.

    ``responses`` maps a provider kind value to either an ``httpx.Response``,
    an exception instance to raise, or a callable ``request -> Response``.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        provider = PROVIDER_HOSTS[request.url.host]
        if calls is not None:
            calls.append(provider)
        outcome = responses.get(provider, httpx.Response(500, json={"error": {"message": f"{provider} down"}}))
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(request)
        return outcome

    return httpx.MockTransport(handler)


RED_PARTS_RESPONSE = json.dumps({
    "operations": [
        {
            "type": "modify_instance",
            "path": ["Workspace", "Part1"],
            "properties": {"Color": {"type": "Color3", "value": "1,0,0"}},
        }
    ],
    "summary": "Colored Part1 red",
})
