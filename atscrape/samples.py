"""Sample input/output extraction from AtCoder task statements.

Statements are authored by hand, so the markup varies: modern pages wrap
each sample in ``<section><h3>Sample Input 1</h3><pre>...</pre></section>``
inside per-language ``span.lang-en`` / ``span.lang-ja`` blocks, while older
pages put a bare ``<h3>入力例1</h3>`` next to a ``<pre>``. Sections are matched
by heading text and container, in document order, and the k-th input is
paired with the k-th output.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum

from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel, ConfigDict, Field

from .models import SamplePair

logger = logging.getLogger(__name__)

HEADING_TAG_RE = re.compile(r"^h[2-4]$")
INPUT_HEADING_RE = re.compile(r"sample\s*input|入力例", re.IGNORECASE)
OUTPUT_HEADING_RE = re.compile(r"sample\s*output|出力例", re.IGNORECASE)


class SectionKind(str, Enum):
    INPUT = "input"
    OUTPUT = "output"


@dataclass(frozen=True)
class Section:
    kind: SectionKind
    heading: str
    text: str


class Extraction(BaseModel):
    samples: list[SamplePair] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


def normalize_sample_text(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n").replace("\xa0", " ")
    lines = [line.rstrip() for line in text.split("\n")]
    while lines and not lines[0]:
        lines.pop(0)
    while lines and not lines[-1]:
        lines.pop()
    return "\n".join(lines) + "\n" if lines else ""


def classify_heading(title: str) -> SectionKind | None:
    if INPUT_HEADING_RE.search(title):
        return SectionKind.INPUT
    if OUTPUT_HEADING_RE.search(title):
        return SectionKind.OUTPUT
    return None


def _container_pre(heading: Tag) -> Tag | None:
    parent = heading.parent
    if isinstance(parent, Tag) and parent.name == "section":
        pre = parent.find("pre")
        if isinstance(pre, Tag):
            return pre
    for sib in heading.next_siblings:
        if not isinstance(sib, Tag):
            continue
        if sib.name == "pre":
            return sib
        if HEADING_TAG_RE.match(sib.name):
            break
    return None


def _sections_in(root: Tag, warnings: list[str]) -> list[Section]:
    out: list[Section] = []
    for h in root.find_all(HEADING_TAG_RE):
        title = h.get_text(" ", strip=True)
        kind = classify_heading(title)
        if kind is None:
            continue
        pre = _container_pre(h)
        if pre is None:
            warnings.append(f"'{title}' has no <pre> block, skipped")
            continue
        out.append(Section(kind, title, normalize_sample_text(pre.get_text())))
    return out


def _candidate_roots(soup: BeautifulSoup, language: str) -> list[Tag]:
    statement = soup.select_one("#task-statement")
    base: Tag = statement if statement is not None else soup
    other = "ja" if language == "en" else "en"
    roots: list[Tag] = []
    for lang in (language, other):
        span = base.select_one(f"span.lang-{lang}")
        if span is not None:
            roots.append(span)
    roots.append(base)
    return roots


def find_sections(html: str, language: str = "en") -> tuple[list[Section], list[str]]:
    soup = BeautifulSoup(html, "html.parser")
    for root in _candidate_roots(soup, language):
        warnings: list[str] = []
        sections = _sections_in(root, warnings)
        if sections:
            return sections, warnings
    return [], []


def extract_samples(html: str, language: str = "en") -> Extraction:
    sections, warnings = find_sections(html, language)
    inputs = [s for s in sections if s.kind is SectionKind.INPUT]
    outputs = [s for s in sections if s.kind is SectionKind.OUTPUT]
    if len(inputs) != len(outputs):
        warnings.append(
            f"found {len(inputs)} sample inputs but {len(outputs)} sample outputs; "
            f"keeping the first {min(len(inputs), len(outputs))}"
        )

    samples: list[SamplePair] = []
    for k, (inp, out) in enumerate(zip(inputs, outputs), start=1):
        if not inp.text or not out.text:
            side = "input" if not inp.text else "output"
            warnings.append(f"sample {k} dropped: empty {side}")
            continue
        samples.append(SamplePair(index=k, input=inp.text, output=out.text))

    for w in warnings:
        logger.warning("%s", w)
    return Extraction(samples=samples, warnings=warnings)


def extract(html: str, language: str = "en") -> list[SamplePair]:
    return extract_samples(html, language).samples
