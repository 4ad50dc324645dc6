"""
Unit tests for the receipt scanning pipeline — endpoint selection, extraction,
orchestration and notice classification.
"""
import base64
import json
from datetime import datetime, timezone

import httpx
import pytest

from conftest import API_BASE, MODELS, gemini_reply
from fintrack.categories import SENTINEL_CATEGORY, expense_category_ids
from fintrack.scanner import (
    FileTooLarge,
    NoFileProvided,
    ReceiptScanner,
    ScannerNotConfigured,
    failed_result,
)
from fintrack.scanner.endpoints import (
    AllEndpointsFailed,
    EndpointSelector,
    build_endpoints,
    get_policy,
    response_text,
    weighted_policy,
)
from fintrack.scanner.extraction import (
    UNRECOGNIZED_DESCRIPTION,
    extract_result,
    find_json_object,
    sanitize_amount,
    sanitize_date,
    strip_code_fences,
)
from fintrack.scanner.notice import classify_notice
from fintrack.scanner.prompt import build_prompt
from fintrack.schemas import ExtractionResult, ReceiptUpload

ALLOWED = ["groceries", "food", "travel", SENTINEL_CATEGORY]

RECEIPT_JSON = json.dumps(
    {
        "amount": 42.5,
        "date": "2024-03-10T12:00:00.000Z",
        "description": "Weekly groceries",
        "merchantName": "Fresh Mart",
        "category": "groceries",
    }
)


def make_upload(size: int = 16, mime_type: str = "image/png") -> ReceiptUpload:
    content = b"\x89PNG" + b"\x00" * max(size - 4, 0)
    return ReceiptUpload(content=content, mime_type=mime_type, size=len(content))


# =====================================================================
# Extraction
# =====================================================================
class TestExtraction:
    def test_plain_json(self):
        result = extract_result(RECEIPT_JSON, ALLOWED)
        assert result.status == "parsed"
        assert result.amount == 42.5
        assert result.merchant_name == "Fresh Mart"
        assert result.category == "groceries"
        assert result.date == datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)

    def test_fenced_json_is_unwrapped(self):
        text = f"Here you go:\n```json\n{RECEIPT_JSON}\n```\nThanks!"
        result = extract_result(text, ALLOWED)
        assert result.status == "parsed"
        assert result.description == "Weekly groceries"
        assert result.amount == 42.5

    def test_fence_without_language_tag(self):
        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_undecodable_json_is_unrecognized(self):
        result = extract_result('{"amount": 12.5, "date": ', ALLOWED)
        assert result.status == "unrecognized"
        assert "format not recognized" in result.description
        assert result.description == UNRECOGNIZED_DESCRIPTION
        assert result.amount == 0
        assert result.merchant_name == "Unknown merchant"
        assert result.category == SENTINEL_CATEGORY

    def test_no_json_at_all(self):
        result = extract_result("I cannot read this image.", ALLOWED)
        assert result.status == "unrecognized"

    def test_empty_text(self):
        assert extract_result("", ALLOWED).status == "unrecognized"

    def test_category_outside_allow_list_uses_sentinel(self):
        text = RECEIPT_JSON.replace('"groceries"', '"casino"')
        result = extract_result(text, ALLOWED)
        assert result.category == SENTINEL_CATEGORY
        assert result.amount == 42.5
        assert result.merchant_name == "Fresh Mart"

    def test_negative_amount_is_made_positive(self):
        result = extract_result('{"amount": -19.99}', ALLOWED)
        assert result.amount == 19.99

    def test_partial_object_is_filled_with_defaults(self):
        result = extract_result("{}", ALLOWED)
        assert result.status == "parsed"
        assert result.amount == 0
        assert result.description == "Receipt scan"
        assert result.merchant_name == "Unknown merchant"
        assert result.category == SENTINEL_CATEGORY

    def test_blank_strings_use_placeholders(self):
        result = extract_result('{"description": "  ", "merchantName": ""}', ALLOWED)
        assert result.description == "Receipt scan"
        assert result.merchant_name == "Unknown merchant"

    def test_first_complete_object_wins(self):
        text = 'Notes {not json} then {"amount": 5, "category": "food"} and {"amount": 9}'
        result = extract_result(text, ALLOWED)
        assert result.amount == 5
        assert result.category == "food"

    def test_nested_object_kept_whole(self):
        obj = find_json_object('x {"amount": 3, "meta": {"k": "v"}} y')
        assert obj == {"amount": 3, "meta": {"k": "v"}}

    def test_find_json_object_raises_without_object(self):
        with pytest.raises(ValueError):
            find_json_object("[1, 2, 3]")

    @pytest.mark.parametrize(
        "value, expected",
        [
            (10, 10.0),
            (-3.5, 3.5),
            ("12.30", 12.3),
            ("1,250.00", 1250.0),
            ("abc", 0.0),
            (None, 0.0),
            (True, 0.0),
            (float("nan"), 0.0),
            ([1], 0.0),
            (10 ** 400, 0.0),
        ],
    )
    def test_sanitize_amount(self, value, expected):
        assert sanitize_amount(value) == expected

    def test_sanitize_date_invalid_falls_back_to_now(self):
        before = datetime.now(timezone.utc)
        parsed = sanitize_date("last tuesday")
        assert parsed >= before

    def test_sanitize_date_naive_is_utc(self):
        assert sanitize_date("2024-01-02T03:04:05").tzinfo == timezone.utc

    @pytest.mark.parametrize(
        "text",
        [
            RECEIPT_JSON,
            '{"amount": "-7", "category": 3}',
            '{"amount": 1e400}',
            "```json\n{broken\n```",
            "null",
            '{"date": 12345}',
            '{"amount": ' + "9" * 400 + ', "merchantName": "Shop"}',
            '{"amount": 3, "items": ' + "[" * 100000,
        ],
    )
    def test_result_invariants(self, text):
        result = extract_result(text, ALLOWED)
        assert result is not None
        assert result.amount >= 0
        assert result.category in ALLOWED
        assert isinstance(result.date, datetime)

    def test_huge_integer_amount_keeps_other_fields(self):
        text = '{"amount": ' + "9" * 400 + ', "merchantName": "Shop", "category": "groceries"}'
        result = extract_result(text, ALLOWED)
        assert result.status == "parsed"
        assert result.amount == 0
        assert result.merchant_name == "Shop"
        assert result.category == "groceries"

    def test_deeply_nested_payload_is_unrecognized(self):
        result = extract_result('{"amount": 3, "items": ' + "[" * 100000, ALLOWED)
        assert result.status == "unrecognized"


# =====================================================================
# Endpoint selection
# =====================================================================
class TestEndpointSelection:
    def _selector(self, **kw):
        return EndpointSelector(api_key="k", endpoints=build_endpoints(API_BASE, MODELS), **kw)

    def test_first_success_stops(self, gemini):
        gemini.routes["model-a"] = gemini_reply("{}")
        gemini.routes["model-b"] = gemini_reply("{}")
        with httpx.Client(transport=httpx.MockTransport(gemini)) as client:
            endpoint, _ = self._selector().generate(client, {})
        assert endpoint.model == "model-a"
        assert gemini.called_models == ["model-a"]

    def test_falls_through_failures(self, gemini):
        gemini.routes["model-a"] = httpx.Response(500, text="boom")
        gemini.routes["model-b"] = httpx.ConnectError("refused")
        gemini.routes["model-c"] = gemini_reply("ok")
        with httpx.Client(transport=httpx.MockTransport(gemini)) as client:
            endpoint, payload = self._selector().generate(client, {})
        assert endpoint.model == "model-c"
        assert response_text(payload) == "ok"
        assert gemini.called_models == ["model-a", "model-b", "model-c"]

    def test_all_fail_raises_last_error(self, gemini):
        gemini.routes["model-d"] = httpx.Response(503, text="overloaded")
        with httpx.Client(transport=httpx.MockTransport(gemini)) as client:
            with pytest.raises(AllEndpointsFailed) as info:
                self._selector().generate(client, {})
        assert "API request failed: 503" in str(info.value)
        assert "overloaded" in str(info.value)
        assert info.value.last_error.endpoint.model == "model-d"
        assert gemini.called_models == MODELS

    def test_attempt_budget(self, gemini):
        with httpx.Client(transport=httpx.MockTransport(gemini)) as client:
            with pytest.raises(AllEndpointsFailed):
                self._selector(attempt_budget=2).generate(client, {})
        assert gemini.called_models == ["model-a", "model-b"]

    def test_negative_attempt_budget_rejected(self):
        with pytest.raises(ValueError):
            self._selector(attempt_budget=-1)

    def test_non_json_success_body_falls_through(self, gemini):
        gemini.routes["model-a"] = httpx.Response(200, text="<html>proxy page</html>")
        gemini.routes["model-b"] = gemini_reply("ok")
        with httpx.Client(transport=httpx.MockTransport(gemini)) as client:
            endpoint, payload = self._selector().generate(client, {})
        assert endpoint.model == "model-b"
        assert response_text(payload) == "ok"
        assert gemini.called_models == ["model-a", "model-b"]

    def test_no_endpoints(self, gemini):
        selector = EndpointSelector(api_key="k", endpoints=[])
        with httpx.Client(transport=httpx.MockTransport(gemini)) as client:
            with pytest.raises(AllEndpointsFailed, match="No AI endpoints configured"):
                selector.generate(client, {})

    def test_key_sent_as_query_param(self, gemini):
        gemini.routes["model-a"] = gemini_reply("{}")
        with httpx.Client(transport=httpx.MockTransport(gemini)) as client:
            self._selector().generate(client, {"x": 1})
        assert gemini.calls[0].url.params["key"] == "k"
        assert json.loads(gemini.calls[0].content) == {"x": 1}

    def test_weighted_policy_orders_by_weight(self):
        endpoints = build_endpoints(API_BASE, MODELS, {"model-c": 5, "model-b": 2})
        assert [e.model for e in weighted_policy(endpoints)] == [
            "model-c", "model-b", "model-a", "model-d",
        ]

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            get_policy("random")

    @pytest.mark.parametrize(
        "payload",
        [{}, {"candidates": []}, {"candidates": [{"content": {}}]}, None, {"candidates": [{"content": {"parts": [{"text": 1}]}}]}],
    )
    def test_response_text_missing(self, payload):
        assert response_text(payload) == ""


# =====================================================================
# Orchestration
# =====================================================================
class TestScan:
    def test_success_on_first_endpoint(self, scanner, gemini):
        gemini.routes["model-a"] = gemini_reply(RECEIPT_JSON)
        result = scanner.scan(make_upload(), ["groceries"])
        assert result.status == "parsed"
        assert result.amount == 42.5
        assert result.category == "groceries"

    def test_request_carries_image_and_prompt(self, scanner, gemini):
        gemini.routes["model-a"] = gemini_reply(RECEIPT_JSON)
        upload = make_upload(mime_type="image/jpeg")
        scanner.scan(upload, ["groceries", "food"])
        parts = json.loads(gemini.calls[0].content)["contents"][0]["parts"]
        assert parts[0]["inlineData"]["mimeType"] == "image/jpeg"
        assert base64.b64decode(parts[0]["inlineData"]["data"]) == upload.content
        assert "Use these categories: groceries,food" in parts[1]["text"]

    def test_second_endpoint_result_used(self, scanner, gemini):
        gemini.routes["model-a"] = httpx.Response(500, text="internal")
        gemini.routes["model-b"] = gemini_reply(RECEIPT_JSON)
        result = scanner.scan(make_upload(), ALLOWED)
        assert result.merchant_name == "Fresh Mart"
        assert "Error" not in result.description
        assert "internal" not in result.description
        assert result.failure_reason is None

    def test_all_endpoints_fail(self, scanner, gemini):
        for model in MODELS:
            gemini.routes[model] = httpx.Response(429, text="quota exhausted")
        result = scanner.scan(make_upload(), ALLOWED)
        assert result.status == "failed"
        assert result.description.startswith("Error: API request failed: 429")
        assert "quota exhausted" in result.description
        assert result.amount == 0
        assert result.category == SENTINEL_CATEGORY
        assert result.merchant_name == "Error occurred"

    def test_network_failure_everywhere(self, scanner, gemini):
        for model in MODELS:
            gemini.routes[model] = httpx.ConnectError("connection refused")
        result = scanner.scan(make_upload(), ALLOWED)
        assert "Failed to connect" in result.description
        assert classify_notice(result).level == "error"

    def test_non_json_body_tries_next_endpoint(self, scanner, gemini):
        gemini.routes["model-a"] = httpx.Response(200, text="<html>proxy page</html>")
        gemini.routes["model-b"] = gemini_reply('{"amount": 5, "category": "food"}')
        result = scanner.scan(make_upload(), ALLOWED)
        assert result.status == "parsed"
        assert result.amount == 5
        assert gemini.called_models == ["model-a", "model-b"]

    def test_non_json_body_everywhere_becomes_result(self, scanner, gemini):
        for model in MODELS:
            gemini.routes[model] = httpx.Response(200, text="not json at all")
        result = scanner.scan(make_upload(), ALLOWED)
        assert result.status == "failed"
        assert result.description.startswith("Error: Invalid JSON from model-d")


    def test_unparseable_model_text(self, scanner, gemini):
        gemini.routes["model-a"] = gemini_reply("Sorry, this is blurry {amount: twelve}")
        result = scanner.scan(make_upload(), ALLOWED)
        assert result.status == "unrecognized"
        assert "format not recognized" in result.description

    def test_default_allow_list(self, scanner, gemini):
        gemini.routes["model-a"] = gemini_reply('{"category": "healthcare", "amount": 8}')
        result = scanner.scan(make_upload())
        assert result.category == "healthcare"
        assert "healthcare" in expense_category_ids()

    def test_oversize_rejected_before_network(self, scanner, gemini):
        upload = ReceiptUpload(content=b"x", mime_type="image/png", size=5 * 1024 * 1024 + 1)
        with pytest.raises(FileTooLarge, match="less than 5MB"):
            scanner.scan(upload)
        assert gemini.calls == []

    def test_exactly_five_megabytes_allowed(self, scanner, gemini):
        gemini.routes["model-a"] = gemini_reply(RECEIPT_JSON)
        upload = ReceiptUpload(content=b"x", mime_type="image/png", size=5 * 1024 * 1024)
        assert scanner.scan(upload, ALLOWED).status == "parsed"

    @pytest.mark.parametrize("upload", [None, ReceiptUpload(content=b"", mime_type="image/png", size=0)])
    def test_missing_file(self, scanner, gemini, upload):
        with pytest.raises(NoFileProvided):
            scanner.scan(upload)
        assert gemini.calls == []

    def test_missing_credential(self, gemini):
        client = httpx.Client(transport=httpx.MockTransport(gemini))
        scanner = ReceiptScanner(api_key="", endpoints=build_endpoints(API_BASE, MODELS), client=client)
        with pytest.raises(ScannerNotConfigured):
            scanner.scan(make_upload())
        assert gemini.calls == []

    def test_from_settings(self):
        class _Settings:
            GEMINI_API_KEY = "abc"
            GEMINI_API_BASE = API_BASE
            GEMINI_MODELS = ["m1", "m2", "m3"]
            GEMINI_MODEL_WEIGHTS = {}
            GEMINI_SELECTION_POLICY = "priority"
            GEMINI_MAX_ATTEMPTS = 2
            GEMINI_TIMEOUT_SECONDS = 5.0
            RECEIPT_MAX_BYTES = 1024

        scanner = ReceiptScanner.from_settings(_Settings())
        assert [e.model for e in scanner.selector.plan()] == ["m1", "m2"]
        assert scanner.selector.timeout == 5.0
        assert scanner.max_bytes == 1024

    def test_list_models(self, scanner, gemini):
        gemini.routes["models"] = httpx.Response(200, json={"models": [{"name": "models/model-a"}]})
        assert scanner.list_models() == {"models": [{"name": "models/model-a"}]}

    def test_list_models_error(self, scanner, gemini):
        assert scanner.list_models()["error"].startswith("Failed to fetch models: 404")

    def test_connectivity(self, scanner, gemini):
        gemini.routes["model-b"] = gemini_reply('{"status": "success"}')
        assert scanner.check_connectivity(["model-a", "model-b"]) == {"success": True, "model": "model-b"}

    def test_connectivity_failure(self, scanner, gemini):
        gemini.routes["model-a"] = gemini_reply("no json here")
        report = scanner.check_connectivity(["model-a"])
        assert report["success"] is False


# =====================================================================
# Notice classification
# =====================================================================
class TestNotice:
    def _result(self, description, amount=0):
        return ExtractionResult(description=description, amount=amount)

    def test_error(self):
        assert classify_notice(failed_result("API request failed: 500")).level == "error"

    def test_failed_to_connect(self):
        assert classify_notice(self._result("Failed to connect to model-a")).level == "error"

    def test_unrecognized_is_info(self):
        notice = classify_notice(self._result(UNRECOGNIZED_DESCRIPTION))
        assert notice.level == "info"
        assert "format not recognized" in notice.message

    def test_amount_means_success(self):
        assert classify_notice(self._result("Receipt scan", amount=3)).level == "success"

    def test_specific_description_means_success(self):
        assert classify_notice(self._result("Dinner with team")).level == "success"

    def test_generic_defaults_are_info(self):
        notice = classify_notice(self._result("Receipt scan"))
        assert notice.level == "info"
        assert notice.message.startswith("Receipt scanned. Please review")


def test_prompt_lists_categories_and_sentinel():
    prompt = build_prompt(["a", "b"], datetime(2024, 1, 1, tzinfo=timezone.utc))
    assert "Use these categories: a,b" in prompt
    assert '"category": "other-expense"' in prompt
    assert "2024-01-01T00:00:00+00:00" in prompt
