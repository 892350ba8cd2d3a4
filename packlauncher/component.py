"""State of the form used to create a new custom component."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

UID_PREFIX = "org.multimc.custom."
_NON_LETTERS = re.compile("[^a-z]")


def suggest_uid(name: str) -> str | None:
    """Suggested uid for a component name, or None when the name has no letters a-z."""
    proto = _NON_LETTERS.sub("", name.lower())
    return UID_PREFIX + proto if proto else None


@dataclass
class NewComponentForm:
    """Name and uid entered by the user, with the uid suggested from the name."""

    name_text: str = ""
    uid_text: str = ""
    original_placeholder: str = ""
    blacklist: list[str] = field(default_factory=list)

    @property
    def placeholder(self) -> str:
        return suggest_uid(self.name_text) or self.original_placeholder

    def resolved_name(self) -> str:
        return self.name_text.strip()

    def resolved_uid(self) -> str:
        if self.uid_text:
            return self.uid_text.strip()
        placeholder = self.placeholder
        if placeholder and placeholder != self.original_placeholder:
            return placeholder.strip()
        return ""

    def set_blacklist(self, bad_uids) -> None:
        self.blacklist = list(bad_uids)

    def can_accept(self) -> bool:
        uid = self.resolved_uid()
        return bool(self.resolved_name()) and bool(uid) and uid not in self.blacklist