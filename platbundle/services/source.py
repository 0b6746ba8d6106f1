"""Source resolution.

Classifies the ``--source`` string without touching the network. Order:

1. an existing filesystem path -> ``LocalPath`` (its manifest must name a
   repository, since local trees are cloned too)
2. ``org/repo`` -> ``RepoShorthand``
3. a git URL with a recognized scheme and host -> ``RepoUrl``

Anything else is ``InvalidSource``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

from platbundle.core.config import SourceSettings
from platbundle.core.result import Err, Ok, Result
from platbundle.services.bundle_errors import InvalidManifest, InvalidSource, MissingRepositoryUrl
from platbundle.services.manifest import MANIFEST_NAME, load_manifest_table, repository_field

__all__ = [
    "LocalPath",
    "RepoShorthand",
    "RepoUrl",
    "ResolvedSource",
    "SourceError",
    "resolve_source",
]

_URL_SCHEMES = frozenset({"https", "http", "ssh", "git", "file"})
_SHORTHAND_RE = re.compile(r"^(?P<org>[A-Za-z0-9][A-Za-z0-9_.-]*)/(?P<repo>[A-Za-z0-9_.-]+)$")
_SCP_RE = re.compile(r"^(?P<user>[A-Za-z0-9_.-]+)@(?P<host>[A-Za-z0-9_.-]+):(?P<path>[^\s:][^\s]*)$")


@dataclass(frozen=True, slots=True)
class LocalPath:
    """A local checkout. It is never built in place; its repository is cloned."""

    path: Path
    repository_url: str

    @property
    def clone_url(self) -> str:
        return self.repository_url


@dataclass(frozen=True, slots=True)
class RepoShorthand:
    org: str
    repo: str
    base_url: str = "https://github.com"

    @property
    def clone_url(self) -> str:
        return f"{self.base_url}/{self.org}/{self.repo}.git"


@dataclass(frozen=True, slots=True)
class RepoUrl:
    url: str

    @property
    def clone_url(self) -> str:
        return self.url


ResolvedSource = LocalPath | RepoShorthand | RepoUrl

SourceError = InvalidSource | MissingRepositoryUrl | InvalidManifest


def url_host(url: str) -> str | None:
    """Host of a git URL, or None if the string is not one.

    ``file://`` URLs have an empty host.
    """
    scp = _SCP_RE.match(url)
    if scp is not None and "://" not in url:
        return scp.group("host").lower()

    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return None
    if parts.scheme.lower() not in _URL_SCHEMES:
        return None
    if parts.scheme.lower() == "file":
        return "" if parts.path else None
    if not hostname or not parts.path.strip("/"):
        return None
    return hostname.lower()


def _check_url(raw: str, settings: SourceSettings) -> Result[str, InvalidSource]:
    host = url_host(raw)
    if host is None:
        return Err(InvalidSource(raw, "not a local path, org/repo shorthand, or git URL"))
    if host and settings.allowed_hosts and host not in settings.allowed_hosts:
        allowed = ", ".join(settings.allowed_hosts)
        return Err(InvalidSource(raw, f"host '{host}' is not allowed (allowed: {allowed})"))
    return Ok(raw)


def _resolve_local(path: Path, raw: str, settings: SourceSettings) -> Result[ResolvedSource, SourceError]:
    root = path.parent if path.is_file() and path.name == MANIFEST_NAME else path
    manifest = root / MANIFEST_NAME
    if not manifest.is_file():
        return Err(InvalidSource(raw, f"no {MANIFEST_NAME} in {root}"))

    table = load_manifest_table(manifest)
    if isinstance(table, Err):
        return table
    repository = repository_field(table.value, manifest)
    if isinstance(repository, Err):
        return repository
    url = repository.value
    if url is None:
        return Err(MissingRepositoryUrl(manifest))

    checked = _check_url(url, settings)
    if isinstance(checked, Err):
        return Err(InvalidSource(url, f"package.repository in {manifest}: {checked.error.reason}"))
    return Ok(LocalPath(path=root.resolve(), repository_url=url))


def resolve_source(
    raw: str,
    settings: SourceSettings | None = None,
    *,
    cwd: Path | None = None,
) -> Result[ResolvedSource, SourceError]:
    """Classify ``raw`` into a clone-able source.

    Only local existence checks and the local manifest read are performed.
    """
    settings = settings or SourceSettings()
    text = raw.strip()
    if not text:
        return Err(InvalidSource(raw, "empty source"))

    candidate = Path(text).expanduser()
    if cwd is not None and not candidate.is_absolute():
        candidate = cwd / candidate
    if candidate.exists():
        return _resolve_local(candidate, raw, settings)

    if "://" not in text and not text.startswith((".", "/", "~")):
        m = _SHORTHAND_RE.match(text)
        if m is not None:
            repo = m.group("repo").removesuffix(".git")
            if repo:
                return Ok(RepoShorthand(m.group("org"), repo, settings.shorthand_base_url))

    checked = _check_url(text, settings)
    if isinstance(checked, Err):
        return checked
    return Ok(RepoUrl(checked.value))
