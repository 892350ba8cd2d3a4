"""Searching and fetching projects and versions from a mod hosting platform."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from packlauncher.netjob import NetJob
from packlauncher.netrequest import ByteArraySink, NetRequest, RequestState, Transport

log = logging.getLogger(__name__)

_PRE_RELEASE = " Pre-Release "
_PARSE_ERRORS = (KeyError, TypeError, ValueError)


class ApiError(Exception):
    """A request to the platform failed."""

    def __init__(self, reason: str, network_error_code: int = -1) -> None:
        super().__init__(reason)
        self.reason = reason
        self.network_error_code = network_error_code


class RequestAborted(Exception):
    """A request to the platform was aborted."""


@dataclass
class IndexedPack:
    """A project as listed by a platform."""

    addon_id: Any = None
    name: str = ""
    slug: str = ""
    provider: str = ""
    description: str = ""
    website_url: str = ""
    logo_url: str = ""
    authors: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class IndexedVersion:
    """A downloadable version of a project."""

    addon_id: Any = None
    file_id: Any = None
    version: str = ""
    version_number: str = ""
    version_type: str = ""
    date: str = ""
    download_url: str = ""
    file_name: str = ""
    loaders: int = 0
    mc_versions: list[str] = field(default_factory=list)
    dependencies: list[Any] = field(default_factory=list)


@dataclass
class Dependency:
    addon_id: Any = None
    version: str = ""


@dataclass
class SearchArgs:
    resource_type: str = "mod"
    offset: int = 0
    search: str = ""
    sorting: str = ""
    loaders: int = 0
    versions: list[str] = field(default_factory=list)


@dataclass
class VersionSearchArgs:
    pack: IndexedPack
    mc_versions: list[str] = field(default_factory=list)
    loaders: int = 0
    resource_type: str = "mod"


@dataclass
class ProjectInfoArgs:
    pack: IndexedPack


@dataclass
class DependencySearchArgs:
    dependency: Dependency
    mc_version: str = ""
    loader: int = 0


def map_mc_version_to_modrinth(version: object) -> str:
    """Turn a game version name into the form the platform expects."""
    text = str(version)
    if _PRE_RELEASE in text:
        text = text.replace(_PRE_RELEASE, "-pre")
    return text.replace(" ", "-")


def game_versions_string(versions: Iterable[object]) -> str:
    """Quoted, comma separated game versions."""
    return ",".join(f'"{map_mc_version_to_modrinth(v)}"' for v in versions)


def _as_array(doc: Any) -> list[Any]:
    if isinstance(doc, dict):
        data = doc.get("data")
        return data if isinstance(data, list) else []
    return doc if isinstance(doc, list) else []


def _as_object(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _by_date_descending(versions: list[IndexedVersion]) -> list[IndexedVersion]:
    # dates are RFC 3339 strings, which order lexically
    return sorted(versions, key=lambda v: v.date, reverse=True)


class ResourceAPI(ABC):
    """Common request flow for a platform; subclasses supply URLs and JSON loaders."""

    def __init__(self, transport: Transport | None = None, headers: dict[str, str] | None = None) -> None:
        self.transport = transport
        self.headers = dict(headers or {})

    @property
    def debug_name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def get_search_url(self, args: SearchArgs) -> str | None: ...

    @abstractmethod
    def get_versions_url(self, args: VersionSearchArgs) -> str | None: ...

    @abstractmethod
    def get_info_url(self, addon_id: str) -> str | None: ...

    @abstractmethod
    def get_dependency_url(self, args: DependencySearchArgs) -> str | None: ...

    @abstractmethod
    def document_to_array(self, doc: Any) -> list[Any]: ...

    @abstractmethod
    def load_indexed_pack(self, pack: IndexedPack, obj: dict[str, Any]) -> None: ...

    @abstractmethod
    def load_extra_pack_info(self, pack: IndexedPack, obj: dict[str, Any]) -> None: ...

    @abstractmethod
    def load_indexed_pack_version(self, obj: dict[str, Any], resource_type: str) -> IndexedVersion: ...

    def _fetch(self, url: str, job_name: str) -> bytes:
        sink = ByteArraySink()
        job = NetJob(job_name, self.transport)
        job.add_net_action(NetRequest(url, sink, headers=self.headers))
        state = job.run()
        if state is RequestState.ABORTED_BY_USER:
            raise RequestAborted(job_name)
        if state is not RequestState.SUCCEEDED:
            failed = job.failed_actions()
            code = failed[0].status_code if failed else -1
            raise ApiError(job.fail_reason, code)
        return sink.data

    def _parse(self, data: bytes, what: str) -> Any:
        try:
            return json.loads(data)
        except ValueError as exc:
            log.warning("Error while parsing JSON response %s: %s", what, exc)
            log.warning("%r", data)
            raise ApiError(str(exc), -1) from exc

    def search_projects(self, args: SearchArgs) -> list[IndexedPack]:
        """Search the platform; entries that fail to load are skipped."""
        url = self.get_search_url(args)
        if url is None:
            raise ApiError("Failed to create search URL", -1)
        doc = self._parse(self._fetch(url, f"{self.debug_name}::Search"), f"from {self.debug_name}")

        packs: list[IndexedPack] = []
        for raw in self.document_to_array(doc):
            pack = IndexedPack()
            try:
                self.load_indexed_pack(pack, _as_object(raw))
            except _PARSE_ERRORS as exc:
                log.warning("Error while loading resource from %s: %s", self.debug_name, exc)
                continue
            packs.append(pack)
        return packs

    def get_project_versions(self, args: VersionSearchArgs) -> list[IndexedVersion] | None:
        """Valid versions of a project, newest first; None when no URL can be made."""
        url = self.get_versions_url(args)
        if url is None:
            return None
        doc = self._parse(self._fetch(url, f"{args.pack.name}::Versions"), "for getting versions")

        versions: list[IndexedVersion] = []
        try:
            for raw in _as_array(doc):
                file = self.load_indexed_pack_version(_as_object(raw), args.resource_type)
                if file.addon_id is None:
                    file.addon_id = args.pack.addon_id
                if file.file_id is not None and file.download_url:
                    versions.append(file)
            versions = _by_date_descending(versions)
        except _PARSE_ERRORS as exc:
            log.warning("Error while reading %s resource version: %s", self.debug_name, exc)
        return versions

    def get_project_info(self, args: ProjectInfoArgs) -> IndexedPack | None:
        """Fill the given pack with full project information and return it."""
        url = self.get_info_url(str(args.pack.addon_id))
        if url is None:
            return None
        data = self._fetch(url, f"{args.pack.addon_id}::GetProject")
        doc = self._parse(data, "for mod info")
        pack = args.pack
        try:
            if not isinstance(doc, dict):
                raise TypeError("expected a JSON object")
            obj = doc
            if "data" in obj:
                obj = obj["data"]
                if not isinstance(obj, dict):
                    raise TypeError("'data' is not a JSON object")
            self.load_indexed_pack(pack, obj)
            self.load_extra_pack_info(pack, obj)
        except _PARSE_ERRORS as exc:
            log.warning("Error while reading %s resource info: %s", self.debug_name, exc)
        return pack

    def get_dependency_version(self, args: DependencySearchArgs) -> IndexedVersion | None:
        """Newest version of a dependency compatible with the loader, or an empty version."""
        url = self.get_dependency_url(args)
        if url is None:
            return None
        data = self._fetch(url, f"{args.dependency.addon_id}::Dependency")
        doc = self._parse(data, "for getting dependency version")

        if args.dependency.version and isinstance(doc, dict):
            entries = [doc]
        else:
            entries = _as_array(doc)

        versions = []
        for raw in entries:
            file = self.load_indexed_pack_version(_as_object(raw), "mod")
            if file.addon_id is None:
                file.addon_id = args.dependency.addon_id
            if file.file_id is not None and (not file.loaders or args.loader & file.loaders):
                versions.append(file)

        versions = _by_date_descending(versions)
        return versions[0] if versions else IndexedVersion()