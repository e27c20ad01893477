"""
Validation and normalization of resource references.

A resource reference is either the name of a configured resource, an HTTPS
git repository URL, or an npm package reference (``npm:<package>[@<version>]``
or an npmjs.com package URL).
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from urllib.parse import unquote, urlparse

NPM_PREFIX = "npm:"
NPM_HOSTS = {"npmjs.com", "www.npmjs.com"}

# Hosts whose URLs carry /tree/<ref>/..., /blob/<ref>/... suffixes after owner/repo
_FORGE_HOSTS = {"github.com", "www.github.com", "gitlab.com", "codeberg.org", "bitbucket.org"}

_NPM_NAME = r"[a-z0-9][a-z0-9._-]*"
_NPM_SPEC_RE = re.compile(
    rf"^(?P<name>(?:@{_NPM_NAME}/)?{_NPM_NAME})(?:@(?P<version>[^\s/@]+))?$"
)
_RESOURCE_NAME_RE = re.compile(r"^@?[A-Za-z0-9][A-Za-z0-9._/-]*$")
_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

INVALID_REFERENCE = "Invalid resource reference"


@dataclass
class ValidationResult:
    """Outcome of validating one reference."""

    valid: bool
    value: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, value: str) -> "ValidationResult":
        return cls(valid=True, value=value)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(valid=False, error=error)


@dataclass
class NpmReference:
    """A parsed npm package reference."""

    package_name: str
    version: str | None
    package_url: str

    @property
    def reference(self) -> str:
        """The canonical ``npm:<package>[@<version>]`` form."""
        if self.version:
            return f"{NPM_PREFIX}{self.package_name}@{self.version}"
        return f"{NPM_PREFIX}{self.package_name}"


def _npm_package_url(package_name: str, version: str | None) -> str:
    url = f"https://www.npmjs.com/package/{package_name}"
    return f"{url}/v/{version}" if version else url


def validate_git_url(url: str) -> ValidationResult:
    """
    Validate an HTTPS git repository URL and normalize it.

    Forge URLs pointing inside a repository (``/tree/main/docs``) are cut back
    to ``<host>/<owner>/<repo>``; a trailing ``.git`` and trailing slashes are
    removed.
    """
    candidate = (url or "").strip()
    try:
        parsed = urlparse(candidate)
    except ValueError:
        return ValidationResult.fail(f"Invalid URL: {candidate}")

    if parsed.scheme != "https":
        return ValidationResult.fail("Only HTTPS git URLs are supported")
    if not parsed.hostname:
        return ValidationResult.fail(f"Invalid URL: {candidate}")
    if parsed.username or parsed.password:
        return ValidationResult.fail("Git URLs must not contain credentials")

    segments = [segment for segment in parsed.path.split("/") if segment]
    if len(segments) < 2:
        return ValidationResult.fail("Git URL must include an owner and a repository")

    host = parsed.hostname.lower()
    if host in _FORGE_HOSTS:
        segments = segments[:2]

    path = "/".join(segments)
    if path.endswith(".git"):
        path = path[: -len(".git")]
    netloc = host if parsed.port is None else f"{host}:{parsed.port}"
    return ValidationResult.ok(f"https://{netloc}/{path}".rstrip("/"))


def parse_npm_reference(reference: str) -> NpmReference | None:
    """
    Parse ``npm:<package>[@<version>]`` or an npmjs.com package URL.

    Returns:
        The parsed reference, or None when ``reference`` is not an npm reference.
    """
    trimmed = (reference or "").strip()

    if trimmed.startswith(NPM_PREFIX):
        match = _NPM_SPEC_RE.match(trimmed[len(NPM_PREFIX) :])
        if not match:
            return None
        name, version = match.group("name"), match.group("version")
        return NpmReference(name, version, _npm_package_url(name, version))

    try:
        parsed = urlparse(trimmed)
    except ValueError:
        return None
    if parsed.scheme != "https" or (parsed.hostname or "").lower() not in NPM_HOSTS:
        return None

    segments = [unquote(segment) for segment in parsed.path.split("/") if segment]
    if len(segments) < 2 or segments[0] != "package":
        return None

    if segments[1].startswith("@"):
        if len(segments) < 3:
            return None
        name = f"{segments[1]}/{segments[2]}"
        rest = segments[3:]
    else:
        name = segments[1]
        rest = segments[2:]

    version = rest[1] if len(rest) >= 2 and rest[0] == "v" else None
    if not _NPM_SPEC_RE.match(name if version is None else f"{name}@{version}"):
        return None
    return NpmReference(name, version, _npm_package_url(name, version))


def validate_resource_reference(reference: str) -> ValidationResult:
    """
    Validate a resource reference and return its normalized form.

    Configured-name-shaped strings are returned unchanged, git URLs are
    normalized with ``validate_git_url`` and npm references are rewritten to
    ``npm:<package>[@<version>]``.
    """
    trimmed = (reference or "").strip()
    if not trimmed:
        return ValidationResult.fail("Resource reference cannot be empty")

    npm = parse_npm_reference(trimmed)
    if npm is not None:
        return ValidationResult.ok(npm.reference)
    if trimmed.startswith(NPM_PREFIX):
        return ValidationResult.fail(f"Invalid npm reference: {trimmed}")

    if trimmed.startswith("https://"):
        return validate_git_url(trimmed)

    if _RESOURCE_NAME_RE.match(trimmed):
        return ValidationResult.ok(trimmed)

    return ValidationResult.fail(INVALID_REFERENCE)


def validate_resources(references: list[str]) -> ValidationResult:
    """Validate every reference, failing on the first invalid one."""
    for reference in references:
        result = validate_resource_reference(reference)
        if not result.valid:
            return ValidationResult.fail(f'{result.error}: "{reference}"')
    return ValidationResult(valid=True)


def resource_name_to_key(name: str) -> str:
    """
    Derive a filesystem-safe directory name from a resource name.

    Safe names are used verbatim. Anything else has its unsafe runs replaced
    with ``-`` and gets a short hash of the original name appended, so two
    different names never map to the same key.
    """
    cleaned = _UNSAFE_KEY_CHARS.sub("-", name).strip("-.")
    if cleaned == name and cleaned not in {"", ".", ".."}:
        return name
    digest = hashlib.sha256(name.encode("utf-8")).hexdigest()[:8]
    return f"{cleaned or 'resource'}-{digest}"
