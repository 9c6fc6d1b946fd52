"""
Script markup rewriting
Turns <script> elements into inert placeholders and back
"""

import html
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Callable, Dict, List, Optional, Tuple

from ..constants import ScriptMarkers

KIND_EXTERNAL = "external"
KIND_INLINE = "inline"
KIND_RAW = "raw"


@dataclass
class ScriptTag:
    """A parsed <script> element: ordered attributes plus body text"""
    attributes: Dict[str, Optional[str]] = field(default_factory=dict)
    body: str = ""

    @property
    def src(self) -> Optional[str]:
        return self.attributes.get("src")

    @property
    def effective_type(self) -> str:
        """The type a browser would execute the element as"""
        return self.attributes.get("type") or ScriptMarkers.DEFAULT_TYPE

    @property
    def is_placeholder(self) -> bool:
        return ScriptMarkers.CATEGORY in self.attributes and self.effective_type == ScriptMarkers.INERT_TYPE

    def equivalent(self, other: "ScriptTag") -> bool:
        """Same element as far as execution goes: attributes, type, src and body"""
        mine = {k: v for k, v in self.attributes.items() if k != "type"}
        theirs = {k: v for k, v in other.attributes.items() if k != "type"}
        return mine == theirs and self.effective_type == other.effective_type and self.body == other.body

    def render(self) -> str:
        return f"<script{render_attributes(self.attributes)}>{self.body}</script>"


def render_attributes(attributes: Dict[str, Optional[str]]) -> str:
    parts = []
    for name, value in attributes.items():
        if value is None:
            parts.append(f" {name}")
        else:
            parts.append(f' {name}="{html.escape(value, quote=True)}"')
    return "".join(parts)


class _ScriptRewriter(HTMLParser):
    """Re-emits markup verbatim except for <script> elements, which go through ``transform``"""

    def __init__(self, transform: Callable[[ScriptTag], Optional[ScriptTag]]):
        super().__init__(convert_charrefs=False)
        self.transform = transform
        self.output: List[str] = []
        self.scripts: List[ScriptTag] = []
        self._open: Optional[Tuple[str, ScriptTag]] = None

    def handle_starttag(self, tag, attrs):
        text = self.get_starttag_text() or ""
        if tag == "script" and self._open is None:
            self._open = (text, ScriptTag(attributes=dict(attrs)))
            return
        self.output.append(text)

    def handle_startendtag(self, tag, attrs):
        text = self.get_starttag_text() or ""
        if tag == "script":
            self._emit(text, ScriptTag(attributes=dict(attrs)))
            return
        self.output.append(text)

    def handle_endtag(self, tag):
        if tag == "script" and self._open is not None:
            text, script = self._open
            self._open = None
            self._emit(text, script)
            return
        self.output.append(f"</{tag}>")

    def handle_data(self, data):
        if self._open is not None:
            self._open[1].body += data
        else:
            self.output.append(data)

    def handle_entityref(self, name):
        self.handle_data(f"&{name};")

    def handle_charref(self, name):
        self.handle_data(f"&#{name};")

    def handle_comment(self, data):
        self.output.append(f"<!--{data}-->")

    def handle_decl(self, decl):
        self.output.append(f"<!{decl}>")

    def handle_pi(self, data):
        self.output.append(f"<?{data}>")

    def unknown_decl(self, data):
        self.output.append(f"<![{data}]>")

    def close(self):
        super().close()
        if self._open is not None:
            text, script = self._open
            self._open = None
            self._emit(text, script)

    def _emit(self, start_text: str, script: ScriptTag) -> None:
        self.scripts.append(script)
        replacement = self.transform(script)
        if replacement is None:
            self.output.append(f"{start_text}{script.body}</script>")
        else:
            self.output.append(replacement.render())


def rewrite_scripts(markup: str, transform: Callable[[ScriptTag], Optional[ScriptTag]]) -> str:
    """
    Apply ``transform`` to every script element in ``markup``.

    The transform returns a replacement tag, or None to keep the element
    exactly as written. Everything outside script elements is preserved.
    """
    rewriter = _ScriptRewriter(transform)
    rewriter.feed(markup)
    rewriter.close()
    return "".join(rewriter.output)


def parse_scripts(markup: str) -> List[ScriptTag]:
    rewriter = _ScriptRewriter(lambda script: None)
    rewriter.feed(markup)
    rewriter.close()
    return rewriter.scripts


def parse_script(markup: str) -> Optional[ScriptTag]:
    scripts = parse_scripts(markup)
    return scripts[0] if scripts else None


def detect_kind(content: str) -> str:
    script = parse_script(content) if "<script" in content.lower() else None
    if script is None:
        return KIND_RAW
    if script.src is not None:
        return KIND_EXTERNAL
    return KIND_INLINE


def wrap_raw(code: str, attributes: Optional[Dict[str, Optional[str]]] = None) -> str:
    return ScriptTag(attributes=dict(attributes or {}), body=code).render()


def to_placeholder(script: ScriptTag, category: str, script_id: Optional[str] = None) -> ScriptTag:
    """Inert copy of ``script``: text/plain type, category markers, src moved aside"""
    attributes: Dict[str, Optional[str]] = {
        "type": ScriptMarkers.INERT_TYPE,
        ScriptMarkers.CATEGORY: category,
    }
    if script_id:
        attributes[ScriptMarkers.SCRIPT_ID] = script_id
    attributes[ScriptMarkers.ORIGINAL_TYPE] = script.effective_type
    if script.src is not None:
        attributes[ScriptMarkers.ORIGINAL_SRC] = script.src

    for name, value in script.attributes.items():
        if name in ("type", "src") or name in attributes:
            continue
        attributes[name] = value
    return ScriptTag(attributes=attributes, body=script.body)


def from_placeholder(script: ScriptTag) -> Optional[ScriptTag]:
    """Executable element recovered from a placeholder, or None for anything else"""
    if not script.is_placeholder:
        return None

    attributes: Dict[str, Optional[str]] = {
        "type": script.attributes.get(ScriptMarkers.ORIGINAL_TYPE) or ScriptMarkers.DEFAULT_TYPE,
    }
    original_src = script.attributes.get(ScriptMarkers.ORIGINAL_SRC)
    if original_src is not None:
        attributes["src"] = original_src

    for name, value in script.attributes.items():
        if name == "type" or name.startswith(ScriptMarkers.PREFIX):
            continue
        attributes.setdefault(name, value)
    return ScriptTag(attributes=attributes, body=script.body)


def block_script(markup: str, category: str, script_id: Optional[str] = None) -> str:
    """Rewrite every script element in ``markup`` into an inert placeholder"""
    return rewrite_scripts(markup, lambda script: to_placeholder(script, category, script_id))


def restore_script(markup: str) -> str:
    """Reverse block_script(); non-placeholder scripts are left untouched"""
    return rewrite_scripts(markup, from_placeholder)
