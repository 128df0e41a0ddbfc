"""Tests for model gateways and provider selection (no network, no model weights)."""

import base64
from io import BytesIO
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest
from google.genai import errors as genai_errors
from PIL import Image

from listing_lens.core.errors import ConfigurationError, InvalidImageData, InvalidInput, ProviderError
from listing_lens.core.settings import Settings
from listing_lens.report.normalizer import normalize
from listing_lens.vlm.gateway import build_gateway, data_url, decode_images
from listing_lens.vlm.gemini_gateway import GeminiGateway
from listing_lens.vlm.openai_gateway import OpenAIGateway
from listing_lens.vlm.qwen_gateway import QwenConfig, QwenGateway, _normalize_model_id, to_pil_images
from listing_lens.vlm.stub import StubGateway


def png_b64(size=(8, 6), color=(200, 10, 10)) -> str:
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode()


# ── Helpers ──────────────────────────────────────────────────────────


def test_data_url():
    assert data_url("QUJD", "image/png") == "data:image/png;base64,QUJD"


def test_decode_images():
    assert decode_images(["aGk=", "aGVsbG8="]) == [b"hi", b"hello"]


def test_decode_images_invalid_base64():
    with pytest.raises(InvalidImageData, match=r"images\[1\]") as exc:
        decode_images(["aGk=", "a"])
    assert isinstance(exc.value, InvalidInput)
    assert exc.value.status_code == 400


# ── Provider Selection ───────────────────────────────────────────────


@pytest.mark.parametrize(
    "provider, cls",
    [("openai", OpenAIGateway), ("gemini", GeminiGateway), ("qwen", QwenGateway), ("stub", StubGateway)],
)
def test_build_gateway(provider, cls):
    gw = build_gateway(Settings(_env_file=None, provider=provider))
    assert isinstance(gw, cls)
    assert gw.name == provider


def test_build_gateway_uses_configured_models():
    settings = Settings(_env_file=None, provider="openai", openai_model="gpt-4o")
    assert build_gateway(settings).model == "gpt-4o"
    settings = Settings(_env_file=None, provider="gemini", gemini_model="gemini-2.0-flash")
    assert build_gateway(settings).model == "gemini-2.0-flash"


# ── OpenAI ───────────────────────────────────────────────────────────


def test_openai_request_shape():
    client = MagicMock()
    client.responses.create.return_value = SimpleNamespace(output_text='{"lens_score": 70}')
    gw = OpenAIGateway(api_key=None, model="gpt-4.1-mini", client=client)

    out = gw.invoke(["QUJD", "REVG"], "SYS", "USER", mime_type="image/png")

    assert out == '{"lens_score": 70}'
    kwargs = client.responses.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4.1-mini"
    assert kwargs["text"] == {"format": {"type": "json_object"}}
    system, user = kwargs["input"]
    assert system == {"role": "system", "content": [{"type": "input_text", "text": "SYS"}]}
    assert user["role"] == "user"
    assert user["content"] == [
        {"type": "input_text", "text": "USER"},
        {"type": "input_image", "image_url": "data:image/png;base64,QUJD"},
        {"type": "input_image", "image_url": "data:image/png;base64,REVG"},
    ]


def test_openai_empty_output_is_empty_text():
    client = MagicMock()
    client.responses.create.return_value = SimpleNamespace(output_text=None)
    assert OpenAIGateway(api_key=None, client=client).invoke(["a"], "s", "u") == ""


def test_openai_sdk_error_becomes_provider_error():
    client = MagicMock()
    client.responses.create.side_effect = openai.APIConnectionError(
        request=httpx.Request("POST", "https://api.openai.com/v1/responses")
    )
    gw = OpenAIGateway(api_key=None, client=client)
    with pytest.raises(ProviderError) as exc:
        gw.invoke(["a"], "s", "u")
    assert exc.value.message == "Connection error."


def test_openai_missing_key():
    gw = OpenAIGateway(api_key=None)
    assert gw.status()["configured"] is False
    with pytest.raises(ConfigurationError) as exc:
        gw.invoke(["a"], "s", "u")
    assert exc.value.to_body() == {"error": "Missing OPENAI_API_KEY in environment variables"}


def test_openai_client_built_from_key():
    gw = OpenAIGateway(api_key="sk-test", timeout=12.0)
    client = gw._get_client()
    assert isinstance(client, openai.OpenAI)
    assert gw._get_client() is client


# ── Gemini ───────────────────────────────────────────────────────────


def test_gemini_request_shape():
    client = MagicMock()
    client.models.generate_content.return_value = SimpleNamespace(text='{"lens_score": 40}')
    gw = GeminiGateway(api_key=None, model="gemini-2.5-flash", client=client)

    out = gw.invoke(["aGk=", "aGVsbG8="], "SYS", "USER", mime_type="image/webp")

    assert out == '{"lens_score": 40}'
    kwargs = client.models.generate_content.call_args.kwargs
    assert kwargs["model"] == "gemini-2.5-flash"
    (content,) = kwargs["contents"]
    assert content.role == "user"
    assert content.parts[0].text == "USER"
    assert [p.inline_data.data for p in content.parts[1:]] == [b"hi", b"hello"]
    assert {p.inline_data.mime_type for p in content.parts[1:]} == {"image/webp"}
    assert kwargs["config"].response_mime_type == "application/json"


def test_gemini_api_error_becomes_provider_error():
    client = MagicMock()
    client.models.generate_content.side_effect = genai_errors.APIError(
        400, {"error": {"code": 400, "message": "API key not valid", "status": "INVALID_ARGUMENT"}}
    )
    gw = GeminiGateway(api_key=None, client=client)
    with pytest.raises(ProviderError) as exc:
        gw.invoke(["aGk="], "s", "u")
    assert exc.value.message.startswith("Gemini Error:")


def test_gemini_missing_key():
    with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
        GeminiGateway(api_key=None).invoke(["aGk="], "s", "u")


# ── Qwen (local) ─────────────────────────────────────────────────────


@pytest.fixture
def qwen():
    return QwenGateway(QwenConfig.from_settings(Settings(_env_file=None, qwen_device="cpu")))


def test_normalize_model_id():
    assert _normalize_model_id("") == "Qwen/Qwen2.5-VL-3B-Instruct"
    assert _normalize_model_id("Qwen2.5-VL-7B-Instruct") == "Qwen/Qwen2.5-VL-7B-Instruct"
    assert _normalize_model_id("org/custom") == "org/custom"


def test_qwen_config_from_settings():
    cfg = QwenConfig.from_settings(Settings(_env_file=None, qwen_max_new_tokens=512, qwen_device="cpu"))
    assert cfg.max_new_tokens == 512
    assert cfg.device == "cpu"
    assert cfg.offload_folder.endswith("qwen_offload")


def test_qwen_not_loaded_until_invoked(qwen):
    assert qwen.status() == {
        "provider": "qwen",
        "model": "Qwen/Qwen2.5-VL-3B-Instruct",
        "device": "cpu",
        "loaded": False,
        "load_warning": None,
    }


def test_to_pil_images():
    imgs = to_pil_images([png_b64((8, 6)), png_b64((3, 4))])
    assert [im.size for im in imgs] == [(8, 6), (3, 4)]
    assert all(im.mode == "RGB" for im in imgs)


def test_to_pil_images_rejects_non_image():
    with pytest.raises(InvalidImageData, match="could not be decoded") as exc:
        to_pil_images(["aGVsbG8="])
    assert exc.value.status_code == 400


def test_qwen_messages_have_one_slot_per_image(qwen):
    system, user = qwen._build_messages(3, "SYS", "USER")
    assert system["content"] == [{"type": "text", "text": "SYS"}]
    assert user["content"][:3] == [{"type": "image"}] * 3
    assert user["content"][3] == {"type": "text", "text": "USER"}


def test_qwen_load_failure_is_provider_error(qwen, monkeypatch):
    def boom():
        raise OSError("weights not found")

    monkeypatch.setattr(qwen, "_load", boom)
    with pytest.raises(ProviderError, match="Local model unavailable"):
        qwen.invoke([png_b64()], "s", "u")
    assert qwen.status()["load_warning"] == "weights not found"


def test_qwen_invoke_loads_once_and_generates(qwen, monkeypatch):
    loads = []

    def fake_load():
        loads.append(1)
        qwen._model = object()

    seen = {}

    def fake_generate(imgs, system_prompt, user_prompt):
        seen["n"] = len(imgs)
        return '{"vehicle_title": "Local"}'

    monkeypatch.setattr(qwen, "_load", fake_load)
    monkeypatch.setattr(qwen, "_generate", fake_generate)

    assert qwen.invoke([png_b64(), png_b64()], "s", "u") == '{"vehicle_title": "Local"}'
    qwen.invoke([png_b64()], "s", "u")
    assert loads == [1]
    assert seen["n"] == 1
    assert qwen.status()["loaded"] is True


def test_qwen_generation_runtime_error(qwen, monkeypatch):
    monkeypatch.setattr(qwen, "_load", lambda: setattr(qwen, "_model", object()))

    def oom(*args):
        raise RuntimeError("CUDA out of memory")

    monkeypatch.setattr(qwen, "_generate", oom)
    with pytest.raises(ProviderError, match="out of memory"):
        qwen.invoke([png_b64()], "s", "u")


# ── Stub ─────────────────────────────────────────────────────────────


def test_stub_reply_normalizes():
    raw = StubGateway().invoke(["a", "b", "c"], "s", "u", mime_type="image/png")
    assert not raw.lstrip().startswith("{")
    report = normalize(raw)
    assert report.vehicle_title == "Stub Vehicle"
    assert report.summary.startswith("Received 3 image/png")
    assert len(report.questions_to_ask) == 3
