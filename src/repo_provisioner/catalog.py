from __future__ import annotations
"""Archive presets and JSON catalog loading.

A catalog file is either a JSON list of entries or an object with a
`repositories` list. Each entry needs `remote`; `local` defaults to the last
component of `remote`, and `host_type`, `host`, `subdir` default to the
selected archive preset.

    {"repositories": [
        {"local": "repo", "remote": "repo"},
        {"remote": "libgit2", "host_type": "ssh", "host": "github.com", "subdir": "libgit2/"}
    ]}
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from repo_provisioner.domain.entities import HostType, RepositoryDescriptor
from repo_provisioner.domain.references import RepoRef


@dataclass(frozen=True, slots=True)
class ArchivePreset:
    host_type: HostType
    host: str
    subdir: str


ARCHIVE_PRESETS: dict[str, ArchivePreset] = {
    "usb": ArchivePreset(host_type=HostType.FILE, host="../procts_repo", subdir="git/"),
    "github-https": ArchivePreset(host_type=HostType.HTTPS, host="github.com", subdir="kubicas/"),
}
DEFAULT_ARCHIVE = "github-https"


def load_catalog(path: Path, archive: str = DEFAULT_ARCHIVE) -> list[RepositoryDescriptor]:
    """Read a catalog file into descriptors, preserving file order."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as error:
        raise ValueError(f"Cannot read repository catalog {path}: {error}") from error
    except json.JSONDecodeError as error:
        raise ValueError(f"Invalid JSON in repository catalog {path}: {error}") from error
    return parse_catalog(raw, archive=archive, source=str(path))


def parse_catalog(raw: Any, *, archive: str = DEFAULT_ARCHIVE, source: str = "<catalog>") -> list[RepositoryDescriptor]:
    if archive not in ARCHIVE_PRESETS:
        valid = ", ".join(sorted(ARCHIVE_PRESETS))
        raise ValueError(f"Unsupported archive type '{archive}'. Allowed values: {valid}")
    preset = ARCHIVE_PRESETS[archive]

    entries = raw.get("repositories") if isinstance(raw, dict) else raw
    if not isinstance(entries, list):
        raise ValueError(f"Unexpected catalog payload in {source}: expected a list of repositories")

    descriptors: list[RepositoryDescriptor] = []
    seen: set[str] = set()
    for position, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValueError(f"Catalog entry #{position} in {source} must be a JSON object")
        descriptor = _parse_entry(entry, preset, position, source)
        if descriptor.local_name in seen:
            raise ValueError(f"Duplicate local name '{descriptor.local_name}' in {source}")
        seen.add(descriptor.local_name)
        descriptors.append(descriptor)
    return descriptors


def _parse_entry(entry: dict[str, Any], preset: ArchivePreset, position: int, source: str) -> RepositoryDescriptor:
    remote = _string_field(entry, "remote", position, source)
    if not remote:
        raise ValueError(f"Catalog entry #{position} in {source} is missing 'remote'")

    local = _string_field(entry, "local", position, source) or RepoRef(remote_name=remote).default_local_name
    if not local:
        raise ValueError(f"Catalog entry #{position} in {source} has no usable local name")

    raw_host_type = _string_field(entry, "host_type", position, source)
    try:
        host_type = HostType(raw_host_type) if raw_host_type else preset.host_type
    except ValueError as error:
        valid = ", ".join(item.value for item in HostType)
        raise ValueError(
            f"Catalog entry #{position} in {source} has unsupported host_type '{raw_host_type}'. Allowed values: {valid}"
        ) from error

    host = _string_field(entry, "host", position, source)
    subdir = _string_field(entry, "subdir", position, source)
    return RepositoryDescriptor(
        local_name=local,
        remote_name=remote,
        host_type=host_type,
        host=host if host is not None else preset.host,
        subdir=subdir if subdir is not None else preset.subdir,
    )


def _string_field(entry: dict[str, Any], key: str, position: int, source: str) -> str | None:
    value = entry.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Catalog entry #{position} in {source}: '{key}' must be a string")
    return value.strip()
