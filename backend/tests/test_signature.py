import base64
import hashlib
import hmac

import pytest
from starlette.requests import Request

from callportal.services.exceptions import AuthenticationError, SecretNotConfiguredError
from callportal.services.signature import (
    build_signing_base,
    compute_signature,
    get_public_url,
    parse_form_body,
    verify_signature,
)

SECRET = "12345"
URL = "https://portal.example.com/api/call-events?employeeId=7"
PARAMS = {
    "CallSid": "CA123",
    "CallStatus": "completed",
    "CallDuration": "42",
    "To": "+15551234567",
    "From": "+15557654321",
}


def _make_request(path="/api/call-events", query=b"", headers=None, host="internal:8000"):
    raw_headers = [(b"host", host.encode())]
    for key, value in (headers or {}).items():
        raw_headers.append((key.lower().encode(), value.encode()))
    scope = {
        "type": "http",
        "method": "POST",
        "scheme": "http",
        "server": ("internal", 8000),
        "path": path,
        "query_string": query,
        "headers": raw_headers,
    }
    return Request(scope)


class TestSigningBase:
    def test_values_appended_in_sorted_key_order(self):
        base = build_signing_base(URL, PARAMS)
        # CallDuration, CallSid, CallStatus, From, To
        assert base == URL + "42" + "CA123" + "completed" + "+15557654321" + "+15551234567"

    def test_signature_is_base64_hmac_sha1(self):
        expected = base64.b64encode(
            hmac.new(SECRET.encode(), build_signing_base(URL, PARAMS).encode(), hashlib.sha1).digest()
        ).decode()
        assert compute_signature(URL, PARAMS, SECRET) == expected

    def test_parse_form_body(self):
        body = b"CallSid=CA123&To=%2B15551234567&CallDuration=&Note=a+b"
        assert parse_form_body(body) == {
            "CallSid": "CA123",
            "To": "+15551234567",
            "CallDuration": "",
            "Note": "a b",
        }


class TestVerifySignature:
    def test_valid_signature_accepted(self):
        signature = compute_signature(URL, PARAMS, SECRET)
        verify_signature(URL, PARAMS, signature, SECRET)

    def test_missing_signature_rejected(self):
        with pytest.raises(AuthenticationError, match="Missing"):
            verify_signature(URL, PARAMS, None, SECRET)

    def test_missing_secret_rejected(self):
        signature = compute_signature(URL, PARAMS, SECRET)
        with pytest.raises(SecretNotConfiguredError):
            verify_signature(URL, PARAMS, signature, "")

    def test_wrong_secret_rejected(self):
        signature = compute_signature(URL, PARAMS, "other-secret")
        with pytest.raises(AuthenticationError, match="Invalid"):
            verify_signature(URL, PARAMS, signature, SECRET)

    @pytest.mark.parametrize("key", sorted(PARAMS))
    def test_single_character_body_mutation_rejected(self, key):
        signature = compute_signature(URL, PARAMS, SECRET)
        tampered = dict(PARAMS)
        value = tampered[key]
        tampered[key] = value[:-1] + ("0" if value[-1] != "0" else "1")
        with pytest.raises(AuthenticationError):
            verify_signature(URL, tampered, signature, SECRET)

    @pytest.mark.parametrize("tampered_url", [
        "https://portal.example.com/api/call-events?employeeId=8",
        "http://portal.example.com/api/call-events?employeeId=7",
        "https://portal.example.com/api/call-event?employeeId=7",
        "https://portal.example.com/api/call-events",
    ])
    def test_url_mutation_rejected(self, tampered_url):
        signature = compute_signature(URL, PARAMS, SECRET)
        with pytest.raises(AuthenticationError):
            verify_signature(tampered_url, PARAMS, signature, SECRET)

    def test_added_parameter_rejected(self):
        signature = compute_signature(URL, PARAMS, SECRET)
        with pytest.raises(AuthenticationError):
            verify_signature(URL, {**PARAMS, "employee_id": "9"}, signature, SECRET)


class TestPublicUrl:
    def test_request_url_used_by_default(self):
        request = _make_request(query=b"employeeId=7")
        assert get_public_url(request) == "http://internal:8000/api/call-events?employeeId=7"

    def test_forwarded_headers_used_behind_proxy(self):
        request = _make_request(
            query=b"employeeId=7",
            headers={"X-Forwarded-Proto": "https", "X-Forwarded-Host": "portal.example.com"},
        )
        assert get_public_url(request) == URL

    def test_configured_base_url_wins(self):
        request = _make_request(headers={"X-Forwarded-Proto": "https", "X-Forwarded-Host": "proxy.local"})
        assert get_public_url(request, "https://portal.example.com/") == "https://portal.example.com/api/call-events"
