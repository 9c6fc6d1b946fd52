"""
Minimal page model for client-side script gating
Script elements, insertion observers and src interception
"""

from typing import Callable, Dict, Iterator, List, Optional

from ..constants import ScriptMarkers
from .markup import ScriptTag, parse_scripts

InsertObserver = Callable[["ScriptElement"], None]
# Returns True when it took over the assignment
SrcInterceptor = Callable[["ScriptElement", str], bool]


class ScriptElement:
    """A script node in a PageDocument"""

    def __init__(self, attributes: Optional[Dict[str, Optional[str]]] = None, text: str = ""):
        self.attributes: Dict[str, Optional[str]] = dict(attributes or {})
        self.text = text
        self.document: Optional["PageDocument"] = None

    @classmethod
    def from_tag(cls, tag: ScriptTag) -> "ScriptElement":
        return cls(tag.attributes, tag.body)

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def set_attribute(self, name: str, value: str) -> None:
        """Set an attribute; ``src`` on an attached element goes through the page interceptors"""
        if name == "src" and self.document is not None:
            for interceptor in list(self.document.src_interceptors):
                if interceptor(self, value):
                    return
        self.attributes[name] = value

    def remove_attribute(self, name: str) -> None:
        self.attributes.pop(name, None)

    @property
    def src(self) -> Optional[str]:
        return self.attributes.get("src")

    @src.setter
    def src(self, value: str) -> None:
        self.set_attribute("src", value)

    @property
    def type(self) -> str:
        return self.attributes.get("type") or ""

    @property
    def category(self) -> Optional[str]:
        return self.attributes.get(ScriptMarkers.CATEGORY)

    @property
    def is_inert(self) -> bool:
        return self.type == ScriptMarkers.INERT_TYPE

    def to_tag(self) -> ScriptTag:
        return ScriptTag(attributes=dict(self.attributes), body=self.text)

    def outer_html(self) -> str:
        return self.to_tag().render()

    def __repr__(self):
        return f"ScriptElement({self.attributes!r})"


class PageDocument:
    """Ordered collection of script elements with mutation hooks"""

    def __init__(self):
        self.scripts: List[ScriptElement] = []
        self.observers: List[InsertObserver] = []
        self.src_interceptors: List[SrcInterceptor] = []

    @classmethod
    def from_html(cls, markup: str) -> "PageDocument":
        document = cls()
        for tag in parse_scripts(markup):
            document._attach(ScriptElement.from_tag(tag))
        return document

    def __iter__(self) -> Iterator[ScriptElement]:
        return iter(list(self.scripts))

    def __len__(self) -> int:
        return len(self.scripts)

    def observe(self, observer: InsertObserver) -> None:
        self.observers.append(observer)

    def disconnect(self, observer: InsertObserver) -> None:
        if observer in self.observers:
            self.observers.remove(observer)

    def intercept_src(self, interceptor: SrcInterceptor) -> None:
        self.src_interceptors.append(interceptor)

    def release_src(self, interceptor: SrcInterceptor) -> None:
        if interceptor in self.src_interceptors:
            self.src_interceptors.remove(interceptor)

    def append(self, element: ScriptElement) -> ScriptElement:
        self._attach(element)
        self._notify(element)
        return element

    def replace(self, old: ScriptElement, new: ScriptElement) -> ScriptElement:
        index = self.scripts.index(old)
        old.document = None
        new.document = self
        self.scripts[index] = new
        self._notify(new)
        return new

    def query(self, predicate: Callable[[ScriptElement], bool]) -> List[ScriptElement]:
        return [element for element in self.scripts if predicate(element)]

    def to_html(self) -> str:
        return "".join(element.outer_html() for element in self.scripts)

    def _attach(self, element: ScriptElement) -> None:
        element.document = self
        self.scripts.append(element)

    def _notify(self, element: ScriptElement) -> None:
        for observer in list(self.observers):
            observer(element)
