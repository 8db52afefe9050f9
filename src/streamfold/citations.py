"""Citation extraction from a terminal response payload."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from streamfold.state import Citation, FileCitation


@dataclass
class CitationResult:
    citations: list[Citation] = field(default_factory=list)
    file_citations: list[FileCitation] = field(default_factory=list)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _url_citation(annotation: dict) -> Citation | None:
    url = annotation.get("url")
    title = annotation.get("title")
    start = annotation.get("start_index")
    end = annotation.get("end_index")
    if not (
        isinstance(url, str) and isinstance(title, str)
        and _is_int(start) and _is_int(end)
    ):
        return None
    return Citation(url=url, title=title, start_index=start, end_index=end)


def _file_citation(annotation: dict) -> FileCitation | None:
    file_id = annotation.get("file_id")
    filename = annotation.get("filename")
    index = annotation.get("index")
    if not (
        isinstance(file_id, str) and isinstance(filename, str)
        and _is_int(index)
    ):
        return None
    return FileCitation(file_id=file_id, filename=filename, index=index)


def _annotations(response: dict) -> Iterable[dict]:
    output = response.get("output")
    if not isinstance(output, list):
        return
    for item in output:
        if not isinstance(item, dict) or item.get("type") != "message":
            continue
        content = item.get("content")
        if not isinstance(content, list):
            continue
        for part in content:
            if not isinstance(part, dict) or part.get("type") != "output_text":
                continue
            annotations = part.get("annotations")
            if not isinstance(annotations, list):
                continue
            for annotation in annotations:
                if isinstance(annotation, dict):
                    yield annotation


def merge_citations(existing: Iterable, new: Iterable, key: Callable) -> tuple:
    """Concatenate, keeping only the first entry for each key."""
    seen = set()
    merged = []
    for entry in (*existing, *new):
        k = key(entry)
        if k in seen:
            continue
        seen.add(k)
        merged.append(entry)
    return tuple(merged)


def extract_citations(response: dict | None) -> CitationResult:
    """Collect URL and file citations from a completed response.

    Only ``output_text`` parts of ``message`` items carry annotations.
    Malformed annotations are skipped. URL citations are deduplicated by
    URL and file citations by file id, keeping the first occurrence.
    """
    result = CitationResult()
    if not isinstance(response, dict):
        return result
    for annotation in _annotations(response):
        kind = annotation.get("type")
        if kind == "url_citation":
            citation = _url_citation(annotation)
            if citation is not None:
                result.citations.append(citation)
        elif kind == "file_citation":
            file_citation = _file_citation(annotation)
            if file_citation is not None:
                result.file_citations.append(file_citation)

    result.citations = list(
        merge_citations((), result.citations, lambda c: c.url)
    )
    result.file_citations = list(
        merge_citations((), result.file_citations, lambda c: c.file_id)
    )
    return result
