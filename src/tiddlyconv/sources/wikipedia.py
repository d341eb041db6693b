"""MediaWiki article splitter.

One article of any Wikimedia-style project (``<lang>.<project>.<tld>``) is
fetched through ``api.php?action=parse`` and cut into notes:

* every root navigation box, rendered as a compact bracketed outline, with
  one extra note per collapsible sub-navbox;
* the infobox and the related-projects table;
* the intro and one note per H2/H3/H4 section;
* the category list (second API call).

Footnote markers are rewritten into links to the notes section when the
article has one.
"""

from __future__ import annotations

import html as html_lib
import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, unquote, urlsplit

import httpx
from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from tiddlyconv.errors import ConfigurationError, DependencyError
from tiddlyconv.http import get_json, make_client
from tiddlyconv.note import Note
from tiddlyconv.tags import build_tag_string

logger = logging.getLogger(__name__)

NOTES_SECTION_NAMES = ("Примечания", "References", "Сноски", "Notes")
SUBNAVBOX_FALLBACK = "Вложенный шаблон"
_TEMPLATE_LINK_PREFIXES = ("/wiki/Template:", "/wiki/Шаблон:")
_NAVBOX_SEPARATORS = frozenset({"", "•", "·", "|"})

_HEADING_RE = re.compile(r"<(h[2-4])\b[^>]*>(.*?)</\1>", re.S | re.I)
_MARKUP_RE = re.compile(r"<[^>]*>")
_PROTOCOL_RELATIVE_RE = re.compile(r"(^|,\s*)//")


@dataclass(frozen=True)
class ProjectInfo:
    language: str
    name: str
    domain: str

    def tags(self, role: str, import_tag: str) -> str:
        return build_tag_string([f"{self.name}-{role}", import_tag])


def project_info(url: str) -> ProjectInfo:
    """``https://ru.wikipedia.org/...`` → ``ProjectInfo("ru", "wikipedia", "ru.wikipedia.org")``."""
    host = urlsplit(url).netloc
    labels = host.split(".")
    if len(labels) < 3:
        raise ConfigurationError(
            f"cannot tell the wiki project from host {host!r}; expected 'lang.project.org'"
        )
    return ProjectInfo(language=labels[0], name=labels[1], domain=host)


def article_title(url: str) -> str:
    path = urlsplit(url).path
    if not path.startswith("/wiki/") or len(path) == len("/wiki/"):
        raise ConfigurationError(f"URL path does not name a /wiki/ article: {path!r}")
    return unquote(path[len("/wiki/"):])


# ----------------------------------------------------------------------
# Navigation boxes
# ----------------------------------------------------------------------


def _has_class(node: Any, *names: str) -> bool:
    return isinstance(node, Tag) and any(c in names for c in node.get("class") or [])


def visible_text(node: Any) -> str:
    """Text of *node*, ignoring styles, scripts and navbox toggles."""
    if isinstance(node, Comment):
        return ""
    if isinstance(node, NavigableString):
        return str(node)
    if not isinstance(node, Tag):
        return ""
    if node.name in ("style", "script") or _has_class(
        node, "navbar", "navbox-toggler", "mw-collapsible-toggle"
    ):
        return ""
    return "".join(visible_text(c) for c in node.children).strip()


def _find(node: Any, name: str = "", cls: str = "") -> Tag | None:
    """First element (self included) matching *name*/*cls*, not entering nested navboxes."""
    if not isinstance(node, Tag):
        return None
    if (not name or node.name == name) and (not cls or _has_class(node, cls)):
        return node
    for child in node.children:
        if _has_class(child, "navbox"):
            continue
        found = _find(child, name, cls)
        if found is not None:
            return found
    return None


def _quoted(text: str) -> str:
    return f'"{text}"' if len(text.split()) > 1 else text


class _Outline:
    """Space-separated output buffer for the navbox outline."""

    def __init__(self) -> None:
        self.parts: list[str] = []

    def write(self, text: str) -> None:
        if self.parts and not self.parts[-1].endswith(" "):
            self.parts.append(" ")
        self.parts.append(text)

    def open_list(self) -> None:
        self.write("<b>[</b> ")

    def close_list(self) -> None:
        self.parts = ["".join(self.parts).rstrip(" "), " <b>]</b>"]

    def text(self) -> str:
        return "".join(self.parts).strip()


class NavboxRenderer:
    """Render navboxes as ``<b>[</b> … <b>]</b>`` outlines of their links.

    Collapsible sub-navboxes are split off into their own notes and replaced
    in the parent's outline by a link to them.
    """

    def __init__(self, domain: str, tags: list[str]) -> None:
        self.domain = domain
        self.tags = tags

    def render(self, navbox: Tag, title: str) -> tuple[str, list[Note]]:
        """Return the outline of *navbox* and the notes of its sub-navboxes."""
        out = _Outline()
        notes: list[Note] = []
        self._walk(navbox, out, title, notes)
        return out.text(), notes

    def _walk(self, node: Any, out: _Outline, parent_title: str, notes: list[Note]) -> None:
        if isinstance(node, Comment):
            return
        if isinstance(node, NavigableString):
            text = node.strip()
            if text not in _NAVBOX_SEPARATORS:
                out.write(text)
            return
        if not isinstance(node, Tag):
            return
        if node.name in ("style", "script") or _has_class(
            node, "navbar", "mw-collapsible-toggle", "navbox-title"
        ):
            return
        if _has_class(node, "navbox-group"):
            self._group_heading(node, out)
            return
        if node.name == "a":
            href = str(node.get("href") or "")
            text = visible_text(node)
            if text and not href.startswith(_TEMPLATE_LINK_PREFIXES):
                out.write(f'<a href="https://{self.domain}{href}" target="_blank">{_quoted(text)}</a>')
            return

        is_list = _has_class(node, "navbox-list", "navbox-abovebelow")
        if is_list:
            out.open_list()
        for child in node.children:
            if _has_class(child, "navbox-subgroup") and _has_class(child, "mw-collapsible"):
                self._subnavbox(child, out, parent_title, notes)
            else:
                self._walk(child, out, parent_title, notes)
        if is_list:
            out.close_list()

    def _group_heading(self, node: Tag, out: _Outline) -> None:
        text = visible_text(node)
        if not text:
            return
        link = _find(node, name="a")
        if link is not None:
            href = str(link.get("href") or "")
            out.write(f'<b><a href="https://{self.domain}{href}" target="_blank">{_quoted(text)}</a></b>')
        else:
            out.write(f"<b>{_quoted(text)}</b>")

    def _subnavbox(self, node: Tag, out: _Outline, parent_title: str, notes: list[Note]) -> None:
        heading = _find(node, cls="navbox-title")
        name = (visible_text(heading) if heading is not None else "") or SUBNAVBOX_FALLBACK
        title = f"{parent_title} / {name}"
        out.write(f"<b>[[{title}]]</b>")

        inner = _Outline()
        deeper: list[Note] = []
        self._walk(node, inner, title, deeper)
        notes.append(Note(title=title, text=inner.text(), tags=build_tag_string([*self.tags, parent_title])))
        notes.extend(deeper)
        logger.debug("Split off sub-navbox %r", title)


def root_navboxes(soup: BeautifulSoup) -> list[Tag]:
    return [
        nb
        for nb in soup.find_all(class_="navbox")
        if not any(_has_class(p, "navbox") for p in nb.parents)
    ]


# ----------------------------------------------------------------------
# Article body
# ----------------------------------------------------------------------


def nested_titles(page: str, headings: Iterable[tuple[int, str]]) -> Iterator[str]:
    """Yield ``<page>: H2 / H3 / H4`` for each ``(level, text)`` heading."""
    h2 = h3 = ""
    for level, text in headings:
        if level == 2:
            h2, h3 = text, ""
            parts = [h2]
        elif level == 3:
            h3 = text
            parts = [h2, h3]
        else:
            parts = [h2, h3, text]
        yield f"{page}: " + " / ".join(p for p in parts if p)


def notes_section_title(body: str, page: str) -> str:
    """Full note title of the footnotes section of *body*, or ``""``.

    *body* must already be cleaned so the headings match the section notes.
    """
    headings = [(level, title) for level, title, _ in split_sections(body)[1]]
    wanted = {name.casefold() for name in NOTES_SECTION_NAMES}
    for (_, text), title in zip(headings, nested_titles(page, headings)):
        if text.casefold() in wanted:
            return title
    return ""


def clean_tree(soup: BeautifulSoup, domain: str) -> None:
    """Strip wiki chrome and make links and images work outside the wiki."""
    mboxes = soup.find_all("table", class_=lambda c: bool(c) and c.startswith("mbox"))
    for node in [*mboxes, *soup.select("span.wikidata-editlink, span.mw-editsection")]:
        node.decompose()
    for p in soup.select("p.mw-empty-elt"):
        if not p.get_text(strip=True):
            p.decompose()
    for wrapper in soup.select("div.mw-heading"):
        wrapper.unwrap()

    for tag in soup.find_all(src=True):
        if tag["src"].startswith("//"):
            tag["src"] = "https:" + tag["src"]
    for tag in soup.find_all(srcset=True):
        tag["srcset"] = _PROTOCOL_RELATIVE_RE.sub(r"\1https://", tag["srcset"])
    for a in soup.find_all("a", href=True):
        if a["href"].startswith("/wiki/"):
            a["href"] = f"https://{domain}{a['href']}"
        if not a.get("target"):
            a["target"] = "_blank"
            a["rel"] = "noopener noreferrer"


def link_footnotes(node: Tag, target: str) -> None:
    """Point footnote markers at the *target* note and drop the ``↑`` backlinks."""
    if not target:
        return
    for sup in node.select("sup.reference"):
        sup.replace_with(f"[[*|{target}]]")
    for span in node.select("span.mw-cite-backlink"):
        span.decompose()


def split_sections(body: str) -> tuple[str, list[tuple[int, str, str]]]:
    """Split *body* at H2, H3 and H4 headings into the intro and ``(level, title, html)`` triples."""
    matches = list(_HEADING_RE.finditer(body))
    if not matches:
        return body.strip(), []
    sections = []
    for i, m in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(body)
        title = html_lib.unescape(_MARKUP_RE.sub("", m.group(2))).strip()
        sections.append((int(m.group(1)[1]), title, body[m.end():end].strip()))
    return body[: matches[0].start()].strip(), sections


class WikipediaSource:
    """Split one wiki article into notes."""

    def __init__(self, url: str, *, transport: httpx.BaseTransport | None = None) -> None:
        self.url = url
        self.project = project_info(url)
        self.article = article_title(url)
        self.import_tag = f"{self.project.name}-{self.article.lower()}"
        self._transport = transport

    @property
    def api_url(self) -> str:
        return f"https://{self.project.domain}/w/api.php"

    def fetch_article(self, client: httpx.Client) -> dict[str, Any]:
        data = get_json(
            client,
            self.api_url,
            {
                "action": "parse",
                "page": self.article,
                "prop": "text",
                "format": "json",
                "disabletoc": "true",
            },
        )
        parse = data.get("parse") if isinstance(data, dict) else None
        text = ((parse or {}).get("text") or {}).get("*")
        if not text:
            detail = (data.get("error") or {}).get("info", "") if isinstance(data, dict) else ""
            raise DependencyError(f"no article HTML for {self.article!r}: {detail or 'empty response'}")
        logger.info("Fetched %d characters of HTML for %s", len(text), self.article)
        return parse

    def fetch_categories(self, client: httpx.Client) -> list[str]:
        data = get_json(
            client,
            self.api_url,
            {
                "action": "query",
                "prop": "categories",
                "titles": self.article,
                "format": "json",
                "cllimit": "max",
                "clshow": "!hidden",
            },
        )
        pages = ((data or {}).get("query") or {}).get("pages") or {}
        return [
            str(cat.get("title") or "")
            for page in pages.values()
            for cat in page.get("categories") or []
        ]

    def convert(self) -> list[Note]:
        logger.info("Converting %s article %s", self.project.name, self.url)
        with make_client(self._transport) as client:
            parse = self.fetch_article(client)
            soup = BeautifulSoup(parse["text"]["*"], "html.parser")
            h1 = soup.find("h1")
            page = (h1.get_text().strip() if h1 else "") or str(parse.get("title") or self.article)

            notes = self.navbox_notes(soup, page)
            for wrapper in soup.select("div.mw-parser-output"):
                wrapper.unwrap()
            clean_tree(soup, self.project.domain)
            tables = self.extract_tables(soup, page)
            target = notes_section_title(str(soup), page)
            link_footnotes(soup, target)
            for _, _, table in tables:
                link_footnotes(table, target)
            notes.extend(self.table_notes(tables))
            notes.extend(self.section_notes(str(soup), page))

            try:
                categories = self.fetch_categories(client)
            except DependencyError as exc:
                logger.warning("Categories unavailable: %s", exc)
                categories = []
        if categories:
            notes.append(self.category_note(categories, page))
        return notes

    def navbox_notes(self, soup: BeautifulSoup, page: str) -> list[Note]:
        tags = [f"{self.project.name}-шаблон", self.import_tag]
        renderer = NavboxRenderer(self.project.domain, tags)
        notes: list[Note] = []
        for i, navbox in enumerate(root_navboxes(soup), start=1):
            heading = _find(navbox, cls="navbox-title")
            name = (visible_text(heading) if heading is not None else "") or f"Нижний шаблон {i}"
            title = f"{page}: {name}"
            outline, nested = renderer.render(navbox, title)
            notes.extend(nested)
            navbox.decompose()
            if not outline:
                logger.warning("Navbox %r rendered empty; skipped", name)
                continue
            notes.append(Note(title=title, text=outline, tags=build_tag_string(tags)))
        return notes

    def extract_tables(self, soup: BeautifulSoup, page: str) -> list[tuple[str, str, Tag]]:
        """Cut the infobox and related-projects table out of *soup*.

        Returns ``(note_title, tag_role, table)`` triples.
        """
        tables: list[tuple[str, str, Tag]] = []
        infobox = soup.find("table", class_=lambda c: bool(c) and c.startswith("infobox"))
        if infobox is not None:
            tables.append((f"{page}: Шаблон-карточка", "шаблон", infobox.extract()))
        related = soup.find("table", class_="ts-Родственный_проект")
        if related is not None:
            tables.append((f"{page}: Родственные проекты", "ссылки", related.extract()))
        return tables

    def table_notes(self, tables: list[tuple[str, str, Tag]]) -> list[Note]:
        return [
            Note(title=title, text=str(table).strip(), tags=self.project.tags(role, self.import_tag))
            for title, role, table in tables
        ]

    def section_notes(self, body: str, page: str) -> list[Note]:
        intro, sections = split_sections(body)
        source = (
            f'<p><br><i>Источник: <a href="{self.url}" target="_blank" '
            f'rel="noopener noreferrer">{self.url}</a></i></p>'
        )
        main = Note(title=page, text=intro + source, tags=self.project.tags("статья", self.import_tag))
        main.fields["source-url"] = self.url
        notes = [main]

        titles = nested_titles(page, ((level, title) for level, title, _ in sections))
        for (_, _, content), title in zip(sections, titles):
            notes.append(Note(title=title, text=content, tags=self.project.tags("раздел", self.import_tag)))
        logger.info("Split %s into %d sections", page, len(sections))
        return notes

    def category_note(self, categories: list[str], page: str) -> Note:
        items = []
        for cat in categories:
            name = cat.split(":", 1)[-1]
            href = f"https://{self.project.domain}/wiki/{quote(cat.replace(' ', '_'))}"
            items.append(f'<li><a href="{href}" target="_blank" rel="noopener noreferrer">{name}</a></li>')
        return Note(
            title=f"{page}: Категории",
            text="<ul>\n" + "\n".join(items) + "\n</ul>",
            tags=self.project.tags("категории", self.import_tag),
        )
