"""TiddlyWiki HTML emitter.

The template is a pre-built TiddlyWiki file whose store area is empty::

    <script id="storeArea" type="application/json">
    []
    </script>

:func:`generate_html` serialises the notes to JSON and swaps that block for
one holding the payload.  Everything else in the template is kept byte for
byte.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path

from tiddlyconv.errors import EmitterError
from tiddlyconv.note import Note

logger = logging.getLogger(__name__)

_STORE_OPEN = '<script id="storeArea" type="application/json">'
STORE_SENTINEL = f"{_STORE_OPEN}\n[]\n</script>"

#: Template bundled with the package, used when no template path is configured
DEFAULT_TEMPLATE = Path(__file__).with_name("template.html")


def render_store(notes: Sequence[Note]) -> str:
    """Return the JSON array for *notes*, safe to place inside ``<script>``."""
    payload = json.dumps([n.to_dict() for n in notes], indent=2, ensure_ascii=False)
    return payload.replace("</script>", "<\\/script>")


def embed_store(template: str, payload: str) -> str | None:
    """Replace the sentinel in *template* with *payload*.

    Returns ``None`` when the template has no sentinel.
    """
    if STORE_SENTINEL not in template:
        return None
    return template.replace(STORE_SENTINEL, f"{_STORE_OPEN}\n{payload}\n</script>", 1)


def missing_sentinel_message() -> str:
    return (
        "ОШИБКА: Не удалось найти блок storeArea в шаблоне. "
        "Убедитесь, что в шаблоне есть блок:\n\n" + STORE_SENTINEL
    )


def generate_html(notes: Sequence[Note], template_path: Path | str, output_path: Path | str) -> Path:
    """Write the TiddlyWiki artifact for *notes* to *output_path*.

    Parameters
    ----------
    notes:
        Notes in output order.
    template_path:
        TiddlyWiki template holding the empty store-area sentinel.
    output_path:
        Destination file.  When the template lacks the sentinel, an error
        message is written here instead and :class:`EmitterError` raised, so
        the failure can be inspected in the artifact itself.
    """
    template_path = Path(template_path)
    output_path = Path(output_path)
    try:
        template = template_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise EmitterError(f"cannot read template {template_path}: {exc}") from exc

    html = embed_store(template, render_store(notes))
    if html is None:
        _write(output_path, missing_sentinel_message())
        raise EmitterError(f"storeArea block not found in template {template_path}")

    _write(output_path, html)
    logger.info("Wrote %d notes to %s", len(notes), output_path)
    return output_path


def _write(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise EmitterError(f"cannot write {path}: {exc}") from exc
