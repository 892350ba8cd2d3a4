import json

import pytest

from packlauncher.netrequest import NetworkError, Reply
from packlauncher.profile_setup import (
    CHECK_FAILED,
    NAME_CHECK_URL,
    NAME_TOO_SHORT,
    PROFILE_URL,
    MojangError,
    NameStatus,
    ProfileSetup,
    format_setup_error,
    interpret_name_check,
    is_valid_profile_name,
)


@pytest.mark.parametrize(
    "name, valid",
    [("abc", True), ("Steve_01", True), ("ab", False), ("a" * 17, False), ("bad name", False), ("a" * 16, True)],
)
def test_is_valid_profile_name(name, valid):
    assert is_valid_profile_name(name) is valid


def test_interpret_available():
    assert interpret_name_check(b'{"status":"AVAILABLE"}', "abc") == (NameStatus.AVAILABLE, "")


def test_interpret_duplicate_and_not_allowed():
    assert interpret_name_check(b'{"status":"DUPLICATE"}', "abc") == (
        NameStatus.EXISTS,
        "Minecraft profile with name abc already exists.",
    )
    assert interpret_name_check(b'{"status":"NOT_ALLOWED"}', "abc") == (
        NameStatus.EXISTS,
        "The name abc is not allowed.",
    )


def test_interpret_invalid_document():
    status, message = interpret_name_check(b"garbage", "abc")
    assert status is NameStatus.ERROR
    assert message == "Unhandled profile name status: INVALID"


def test_mojang_error_fully_parsed():
    data = json.dumps({"path": "/p", "error": "E", "errorMessage": "M"}).encode()
    parsed = MojangError.from_json(data)
    assert parsed.fully_parsed
    assert (parsed.path, parsed.error, parsed.error_message) == ("/p", "E", "M")
    assert parsed.raw_error == data.decode()


def test_mojang_error_partial_and_invalid():
    assert not MojangError.from_json(b'{"path": "/p"}').fully_parsed
    broken = MojangError.from_json(b"{oops")
    assert not broken.fully_parsed
    assert broken.raw_error == "{oops"


def test_format_setup_error_parsed():
    body = json.dumps({"path": "/p", "error": "E", "errorMessage": "M"})
    text = format_setup_error("boom", 400, body)
    assert text.startswith("The server responded with the following error:\n\n")
    assert "Network Error: boom\nHTTP Status: 400" in text
    assert text.endswith("Path: /p\nError: E\nMessage: M\n")


def test_format_setup_error_unparsed():
    text = format_setup_error("boom", 500, b"not json")
    assert "Failed to parse error from Mojang API" in text
    assert text.endswith("Log:\nnot json\n")


def make_transport(status, body, seen):
    def transport(request):
        seen.append(request)
        if status >= 400:
            return Reply(request.url, status, body=body, error=NetworkError.UNKNOWN_CONTENT, error_string="HTTP error")
        return Reply(request.url, status, body=body)

    return transport


def test_check_name_available_sends_headers():
    seen = []
    setup = ProfileSetup("token", make_transport(200, b'{"status":"AVAILABLE"}', seen))
    assert setup.check_name("Steve") is NameStatus.AVAILABLE
    assert setup.ok_enabled
    assert seen[0].url == NAME_CHECK_URL.format("Steve")
    assert seen[0].headers["Authorization"] == "Bearer token"
    assert seen[0].headers["Accept"] == "application/json"


def test_check_name_network_failure():
    setup = ProfileSetup("token", make_transport(500, b"", []))
    assert setup.check_name("Steve") is NameStatus.ERROR
    assert setup.error_text == CHECK_FAILED
    assert not setup.is_checking


def test_name_edited_rejects_short_name():
    seen = []
    setup = ProfileSetup("token", make_transport(200, b"{}", seen))
    assert setup.name_edited("ab") is NameStatus.NOT_SET
    assert setup.error_text == NAME_TOO_SHORT
    assert seen == []


def test_setup_profile_success_posts_payload():
    seen = []
    setup = ProfileSetup("token", make_transport(200, b"{}", seen))
    assert setup.setup_profile("Steve") is True
    assert setup.accepted
    assert seen[0].url == PROFILE_URL
    assert seen[0].method == "POST"
    assert json.loads(seen[0].data) == {"profileName": "Steve"}


def test_setup_profile_failure_reports_server_error():
    body = json.dumps({"path": "/p", "error": "E", "errorMessage": "M"}).encode()
    setup = ProfileSetup("token", make_transport(400, body, []))
    assert setup.setup_profile("Steve") is False
    assert not setup.accepted
    assert "HTTP Status: 400" in setup.error_text
    assert "Message: M\n" in setup.error_text
    assert not setup.is_working