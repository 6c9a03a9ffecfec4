"""Optional markdown to HTML pass for imported post bodies, using pandoc."""

from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess

logger = logging.getLogger(__name__)

_PANDOC_ARGS = (
    "-f",
    "gfm+footnotes+raw_html",
    "-t",
    "html5",
    "--wrap=none",
)
_PANDOC_TIMEOUT_SECONDS = 30


class RenderError(RuntimeError):
    """Raised when pandoc rendering fails."""


def pandoc_available() -> bool:
    return shutil.which("pandoc") is not None


async def render_markdown(body: str, *, enabled: bool) -> str:
    """Render markdown to HTML.

    Returns the body unchanged when rendering is disabled or pandoc is not
    installed. Raises RenderError when pandoc fails.
    """
    if not enabled:
        return body
    if not pandoc_available():
        logger.debug("pandoc not found on PATH, importing raw markdown")
        return body

    try:
        result = await asyncio.to_thread(
            subprocess.run,
            ["pandoc", *_PANDOC_ARGS],
            input=body,
            capture_output=True,
            text=True,
            timeout=_PANDOC_TIMEOUT_SECONDS,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise RenderError(f"Pandoc failed to run: {exc}") from exc
    if result.returncode != 0:
        raise RenderError(f"Pandoc failed: {result.stderr[:200]}")
    return result.stdout
