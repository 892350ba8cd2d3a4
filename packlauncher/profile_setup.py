"""Choosing and registering a profile name for an account."""

from __future__ import annotations

import enum
import json
import re
from dataclasses import dataclass

from packlauncher.netrequest import NetRequest, NetworkError, Transport

PROFILE_URL = "https://api.minecraftservices.com/minecraft/profile"
NAME_CHECK_URL = PROFILE_URL + "/name/{}/available"
NAME_TOO_SHORT = "Name is too short - must be between 3 and 16 characters long."
CHECK_FAILED = "Failed to check name availability."
_PERMITTED_NAME = re.compile(r"[a-zA-Z0-9_]{3,16}")
_NO_ERROR = "no error occurred"


class NameStatus(enum.Enum):
    NOT_SET = enum.auto()
    PENDING = enum.auto()
    AVAILABLE = enum.auto()
    EXISTS = enum.auto()
    ERROR = enum.auto()


def is_valid_profile_name(name: str) -> bool:
    """3 to 16 characters from letters, digits and underscore."""
    return _PERMITTED_NAME.fullmatch(name) is not None


def interpret_name_check(response: bytes | str, name: str) -> tuple[NameStatus, str]:
    """Status and error message for the body of a name availability reply."""
    try:
        doc = json.loads(response)
    except ValueError:
        doc = None
    root = doc if isinstance(doc, dict) else {}
    status = root.get("status")
    if not isinstance(status, str):
        status = "INVALID"
    if status == "AVAILABLE":
        return NameStatus.AVAILABLE, ""
    if status == "DUPLICATE":
        return NameStatus.EXISTS, f"Minecraft profile with name {name} already exists."
    if status == "NOT_ALLOWED":
        return NameStatus.EXISTS, f"The name {name} is not allowed."
    return NameStatus.ERROR, f"Unhandled profile name status: {status}"


@dataclass
class MojangError:
    """An error document returned by the profile service."""

    raw_error: str = ""
    parse_error: str = _NO_ERROR
    fully_parsed: bool = False
    path: str = ""
    error: str = ""
    error_message: str = ""

    @classmethod
    def from_json(cls, data: bytes | str) -> MojangError:
        raw = data.decode("utf-8", "replace") if isinstance(data, bytes) else data
        out = cls(raw_error=raw)
        try:
            doc = json.loads(raw)
        except ValueError as exc:
            out.parse_error = getattr(exc, "msg", str(exc))
            return out
        obj = doc if isinstance(doc, dict) else {}
        fully_parsed = True
        for key, attr in (("path", "path"), ("error", "error"), ("errorMessage", "error_message")):
            value = obj.get(key)
            if isinstance(value, str):
                setattr(out, attr, value)
            else:
                fully_parsed = False
        out.fully_parsed = fully_parsed
        return out


def format_setup_error(error_string: str, status_code: int, body: bytes | str) -> str:
    """Text shown to the user when creating the profile failed."""
    parsed = MojangError.from_json(body)
    message = f"Network Error: {error_string}\nHTTP Status: {status_code}"
    if parsed.fully_parsed:
        message += f"Path: {parsed.path}\n"
        message += f"Error: {parsed.error}\n"
        message += f"Message: {parsed.error_message}\n"
    else:
        message += f"Failed to parse error from Mojang API: {parsed.parse_error}\n"
        message += f"Log:\n{parsed.raw_error}\n"
    return "The server responded with the following error:\n\n" + message


class ProfileSetup:
    """Checks name availability and creates the profile for an account."""

    def __init__(self, access_token: str, transport: Transport | None = None) -> None:
        self.access_token = access_token
        self.transport = transport
        self.name_status = NameStatus.NOT_SET
        self.error_text = ""
        self.current_check = ""
        self.is_checking = False
        self.is_working = False
        self.accepted = False

    @property
    def ok_enabled(self) -> bool:
        return self.name_status is NameStatus.AVAILABLE

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {self.access_token}",
        }

    def _set_status(self, status: NameStatus, error: str = "") -> None:
        self.name_status = status
        self.error_text = error

    def name_edited(self, name: str) -> NameStatus:
        """Validate a typed name and check it with the service when acceptable."""
        if not is_valid_profile_name(name):
            self._set_status(NameStatus.NOT_SET, NAME_TOO_SHORT)
            return self.name_status
        return self.check_name(name)

    def check_name(self, name: str) -> NameStatus:
        """Ask the service whether ``name`` is available and record the answer."""
        if self.is_checking:
            return self.name_status
        self.current_check = name
        self.is_checking = True
        self._set_status(NameStatus.PENDING)
        try:
            request = NetRequest(
                NAME_CHECK_URL.format(name), headers=self._headers(), transport=self.transport
            )
            request.execute()
            if request.error is NetworkError.NO_ERROR:
                self._set_status(*interpret_name_check(request.sink.data, name))
            else:
                self._set_status(NameStatus.ERROR, CHECK_FAILED)
        finally:
            self.is_checking = False
        return self.name_status

    def setup_profile(self, profile_name: str) -> bool:
        """Create the profile; on failure ``error_text`` explains why."""
        if self.is_working:
            return False
        self.is_working = True
        payload = json.dumps({"profileName": profile_name}, separators=(",", ":")).encode("utf-8")
        try:
            request = NetRequest(
                PROFILE_URL,
                method="POST",
                data=payload,
                headers=self._headers(),
                transport=self.transport,
            )
            request.execute()
        finally:
            self.is_working = False
        if request.error is NetworkError.NO_ERROR:
            self.accepted = True
            return True
        self.error_text = format_setup_error(
            request.error_string, request.status_code, bytes(request.error_response)
        )
        return False

    def accept(self) -> bool:
        """Create the profile with the last checked name."""
        return self.setup_profile(self.current_check)