"""Rewrites ``url(...)`` references in stylesheets to fingerprinted URLs."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from assethost.lib.exceptions import LocalIOError, RewriteAmbiguity
from assethost.lib.host import HostResolver
from assethost.lib.keys import KeyNamespace

logger = logging.getLogger(__name__)

# matches optional quoted url(<path>), the query string is captured separately
URL_PATTERN = re.compile(r"""url\(["']?([^\)\?"']+)(\?[^"']*)?["']?\)""", re.IGNORECASE)

# http:, https:, data: and protocol-relative references are never local files
EXTERNAL_REFERENCE = re.compile(r"^(?:[a-z][a-z0-9+.\-]*:|//)", re.IGNORECASE)

# undecodable stylesheet bytes round-trip through surrogate escapes
STYLESHEET_ERRORS = "surrogateescape"


@dataclass
class RewriteRule:
    """One ``url(...)`` occurrence in a stylesheet."""

    start: int
    end: int
    original: str
    reference: str
    replacement: str | None = None

    @property
    def resolved(self) -> bool:
        return self.replacement is not None


class ReferenceMatcher(Protocol):
    """Finds embedded asset references in stylesheet text."""

    def find(self, text: str) -> Iterator[RewriteRule]:
        ...


class RegexReferenceMatcher:
    """Default matcher based on :data:`URL_PATTERN`."""

    def __init__(self, pattern: re.Pattern[str] = URL_PATTERN) -> None:
        self.pattern = pattern

    def find(self, text: str) -> Iterator[RewriteRule]:
        for match in self.pattern.finditer(text):
            yield RewriteRule(
                start=match.start(),
                end=match.end(),
                original=match.group(0),
                reference=(match.group(1) or "").strip(),
            )


class CssRewriter:
    """Rewrites a stylesheet so every local reference points at its storage key.

    Nested assets are always served from the canonical host; gzip is not
    negotiated for them.
    """

    def __init__(
        self,
        namespace: KeyNamespace,
        host_resolver: HostResolver,
        matcher: ReferenceMatcher | None = None,
    ) -> None:
        self.namespace = namespace
        self.host_resolver = host_resolver
        self.matcher = matcher or RegexReferenceMatcher()

    def rewrite(self, text: str, stylesheet_path: Path | str) -> str:
        """Return *text* with every resolvable reference replaced."""
        rules = self.find_rules(text, stylesheet_path)
        if not rules:
            return text

        parts = []
        position = 0
        for rule in rules:
            parts.append(text[position:rule.start])
            parts.append(rule.replacement if rule.resolved else rule.original)
            position = rule.end
        parts.append(text[position:])
        return "".join(parts)

    def rewrite_file(self, stylesheet_path: Path | str) -> str:
        """Read and rewrite a stylesheet.

        Bytes that are not valid UTF-8 are kept as surrogate escapes, so
        encoding the result with ``errors="surrogateescape"`` gives back the
        original bytes outside the rewritten references.
        """
        path = Path(stylesheet_path)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise LocalIOError(path, exc) from exc
        return self.rewrite(data.decode("utf-8", errors=STYLESHEET_ERRORS), path)

    def find_rules(self, text: str, stylesheet_path: Path | str) -> list[RewriteRule]:
        """Match and resolve every reference in *text*."""
        host = self.host_resolver.resolve_host()
        rules = []
        for rule in self.matcher.find(text):
            if EXTERNAL_REFERENCE.match(rule.reference):
                logger.debug("Leaving external reference %s", rule.reference)
            else:
                try:
                    rule.replacement = self._replacement_for(rule.reference, stylesheet_path, host)
                except (RewriteAmbiguity, LocalIOError) as exc:
                    logger.warning("Could not rewrite reference: %s", exc)
            rules.append(rule)
        return rules

    def resolve_path(self, reference: str, stylesheet_path: Path | str) -> Path:
        """Resolve a reference to an absolute local path.

        A leading ``/`` is relative to the public root; anything else is
        relative to the stylesheet's directory.
        """
        if reference.startswith("/"):
            joined = os.path.join(self.namespace.public_path, reference.lstrip("/"))
        else:
            joined = os.path.join(os.path.dirname(os.path.abspath(stylesheet_path)), reference)
        return Path(os.path.normpath(joined))

    def _replacement_for(self, reference: str, stylesheet_path: Path | str, host: str) -> str | None:
        if not reference:
            raise RewriteAmbiguity(reference, stylesheet_path, "Could not find url")

        path = self.resolve_path(reference, stylesheet_path)
        if not path.is_file():
            raise RewriteAmbiguity(reference, stylesheet_path, f"Could not extract path {path}")

        handle = self.namespace.handle_for(path)
        if handle is None:
            raise RewriteAmbiguity(reference, stylesheet_path, "Reference outside of the public path")

        if self.namespace.should_exclude(handle.relative_path):
            logger.debug("Leaving excluded reference %s", reference)
            return None

        try:
            key = self.namespace.key_for(handle)
        except OSError as exc:
            raise LocalIOError(path, exc) from exc

        return f"url({host}/{key})"
