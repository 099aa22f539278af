from __future__ import annotations

import base64
from types import SimpleNamespace

import pytest

from retry import GenerationError, SafetyBlockError
from story_engine import _extract_image


def response_with(parts=None, finish_reason="STOP"):
    candidate = SimpleNamespace(finish_reason=finish_reason, content=SimpleNamespace(parts=parts or []))
    return SimpleNamespace(candidates=[candidate], prompt_feedback=None)


def test_extract_image_returns_inline_bytes():
    part = SimpleNamespace(inline_data=SimpleNamespace(data=b"png-bytes"))
    assert _extract_image(response_with([SimpleNamespace(inline_data=None), part])) == b"png-bytes"


def test_extract_image_decodes_base64_payload():
    part = SimpleNamespace(inline_data=SimpleNamespace(data=base64.b64encode(b"png").decode()))
    assert _extract_image(response_with([part])) == b"png"


def test_safety_finish_reason_is_a_safety_block():
    with pytest.raises(SafetyBlockError) as excinfo:
        _extract_image(response_with(finish_reason="FinishReason.SAFETY"))
    assert str(excinfo.value) == "Blocked by Safety Filter: FinishReason.SAFETY"


def test_prohibited_content_is_a_safety_block():
    with pytest.raises(SafetyBlockError):
        _extract_image(response_with(finish_reason="PROHIBITED_CONTENT"))


def test_blocked_prompt_without_candidates():
    response = SimpleNamespace(candidates=None, prompt_feedback=SimpleNamespace(block_reason="SAFETY"))
    with pytest.raises(SafetyBlockError) as excinfo:
        _extract_image(response)
    assert str(excinfo.value) == "Blocked by Safety Filter: SAFETY"


def test_no_candidates_without_block_reason():
    response = SimpleNamespace(candidates=[], prompt_feedback=None)
    with pytest.raises(GenerationError) as excinfo:
        _extract_image(response)
    assert not isinstance(excinfo.value, SafetyBlockError)
    assert str(excinfo.value) == "No image candidates returned by API."


def test_text_only_response_has_no_image():
    text_part = SimpleNamespace(inline_data=None, text="I cannot draw that.")
    with pytest.raises(GenerationError) as excinfo:
        _extract_image(response_with([text_part]))
    assert not isinstance(excinfo.value, SafetyBlockError)
    assert str(excinfo.value) == "Model returned no image data."
