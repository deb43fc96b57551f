from types import SimpleNamespace

import anthropic
import httpx
import pytest

from waste_tracker.core import vision
from waste_tracker.errors import (
    AccessDeniedError,
    InvalidInputError,
    MalformedResponseError,
    MissingCredentialError,
    QuotaExceededError,
    RateLimitedError,
    UpstreamUnavailableError,
)

_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _status_error(cls, status, message):
    return cls(message, response=httpx.Response(status, request=_REQUEST), body=None)


class _FakeMessages:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.reply)])


def _fake_client(monkeypatch, **kwargs):
    messages = _FakeMessages(**kwargs)
    monkeypatch.setattr(vision, "_get_client", lambda: SimpleNamespace(messages=messages))
    return messages


def test_extract_json_from_fenced_block():
    text = 'Here you go:\n```json\n{"items": [], "notes": "ok"}\n```'
    assert vision._extract_json(text) == {"items": [], "notes": "ok"}


def test_extract_json_from_bare_object():
    assert vision._extract_json('Sure! {"confidence": 0.4} Hope that helps.') == {"confidence": 0.4}


def test_extract_json_rejects_garbage():
    with pytest.raises(MalformedResponseError):
        vision._extract_json("I cannot analyse this image.")
    with pytest.raises(MalformedResponseError):
        vision._extract_json("```json\n[1, 2]\n```")


def test_missing_api_key(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    with pytest.raises(MissingCredentialError):
        vision.analyze_food_waste(b"\xff\xd8\xff")


def test_analyze_sends_image_and_parses_reply(monkeypatch):
    messages = _fake_client(monkeypatch, reply='```json\n{"items": [{"name": "rice"}]}\n```')
    result = vision.analyze_food_waste(b"png-bytes", "image/png")
    assert result == {"items": [{"name": "rice"}]}
    image_block = messages.kwargs["messages"][0]["content"][0]
    assert image_block["source"]["media_type"] == "image/png"


def test_analyze_translates_sdk_errors(monkeypatch):
    _fake_client(monkeypatch, error=_status_error(anthropic.RateLimitError, 429, "rate_limit_error"))
    with pytest.raises(RateLimitedError) as exc:
        vision.analyze_food_waste(b"img")
    assert exc.value.retryable is True


@pytest.mark.parametrize("error, expected", [
    (_status_error(anthropic.AuthenticationError, 401, "invalid x-api-key"), MissingCredentialError),
    (_status_error(anthropic.PermissionDeniedError, 403, "permission_error"), AccessDeniedError),
    (_status_error(anthropic.RateLimitError, 429, "You exceeded your current quota"), QuotaExceededError),
    (_status_error(anthropic.BadRequestError, 400, "Your credit balance is too low"), QuotaExceededError),
    (_status_error(anthropic.BadRequestError, 400, "Could not process image"), InvalidInputError),
    (_status_error(anthropic.InternalServerError, 500, "internal error"), UpstreamUnavailableError),
    (_status_error(anthropic.APIStatusError, 529, "overloaded_error"), UpstreamUnavailableError),
    (anthropic.APIConnectionError(request=_REQUEST), UpstreamUnavailableError),
    (_status_error(anthropic.NotFoundError, 404, "model: claude-nope"), InvalidInputError),
    (_status_error(anthropic.ConflictError, 409, "conflict"), InvalidInputError),
    (_status_error(anthropic.APIStatusError, 413, "request_too_large"), InvalidInputError),
])
def test_translate_error(error, expected):
    assert type(vision.translate_error(error)) is expected


def test_quota_and_rate_limit_are_distinct():
    quota = vision.translate_error(_status_error(anthropic.RateLimitError, 429, "quota exceeded"))
    limited = vision.translate_error(_status_error(anthropic.RateLimitError, 429, "slow down"))
    assert quota.code == "quota_exceeded"
    assert limited.code == "rate_limited"
    assert quota.retryable is False


def test_unknown_model_names_the_setting(monkeypatch):
    monkeypatch.setenv("VISION_MODEL", "claude-nope")
    error = vision.translate_error(_status_error(anthropic.NotFoundError, 404, "model: claude-nope"))
    assert error.code == "invalid_input"
    assert "claude-nope" in error.message
    assert error.details["status"] == 404
