"""YAML front matter splitting, parsing and serialization for exported documents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import frontmatter
import yaml

DELIMITER = "---"

EXPORT_FIELDS: tuple[str, ...] = (
    "id",
    "title",
    "slug",
    "layout",
    "date",
    "author",
    "category",
    "excerpt",
    "permalink",
)


@dataclass(frozen=True)
class SplitDocument:
    """A document split into its front matter block and body.

    ``block`` is the whole front matter including both delimiter lines and
    ``raw_metadata`` the text between them. Both are None when the document
    has no complete front matter block, in which case ``body`` is the whole
    document.
    """

    block: str | None
    raw_metadata: str | None
    body: str

    @property
    def has_metadata(self) -> bool:
        return self.block is not None


def has_front_matter(text: str) -> bool:
    """Return True when the document begins with the front matter delimiter."""
    return text.startswith(DELIMITER)


def split_front_matter(text: str) -> SplitDocument:
    """Split a document into front matter and body.

    The first line must be exactly the delimiter (trailing whitespace allowed).
    Lines are then scanned for the matching closing delimiter; everything after
    it is the body. A missing opening or closing delimiter means the document
    has no front matter.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != DELIMITER:
        return SplitDocument(block=None, raw_metadata=None, body=text)

    for index in range(1, len(lines)):
        if lines[index].rstrip() == DELIMITER:
            block = "".join(lines[: index + 1])
            raw_metadata = "".join(lines[1:index])
            body = "".join(lines[index + 1 :])
            return SplitDocument(block=block, raw_metadata=raw_metadata, body=body)

    return SplitDocument(block=None, raw_metadata=None, body=text)


def parse_metadata(raw_metadata: str) -> dict[str, Any]:
    """Parse a front matter block into a mapping.

    Raises yaml.YAMLError on malformed YAML. A block that parses to something
    other than a mapping (empty block, bare scalar, list) yields an empty dict.
    """
    loaded = yaml.safe_load(raw_metadata)
    if not isinstance(loaded, dict):
        return {}
    return {str(key): value for key, value in loaded.items()}


def serialize_document(metadata: dict[str, Any], body: str) -> str:
    """Serialize metadata and body to markdown with YAML front matter.

    Keys are written in ``EXPORT_FIELDS`` order; None values are omitted.
    """
    ordered = {key: metadata[key] for key in EXPORT_FIELDS if metadata.get(key) is not None}
    ordered.update(
        {
            key: value
            for key, value in metadata.items()
            if key not in ordered and key not in EXPORT_FIELDS and value is not None
        }
    )
    post = frontmatter.Post(body, **ordered)
    return str(frontmatter.dumps(post, sort_keys=False)) + "\n"
