from streamfold.citations import extract_citations, merge_citations
from streamfold.state import Citation

from tests.conftest import file_citation, message_with_annotations, url_citation


class TestExtractCitations:
    def test_url_and_file_citations(self):
        result = extract_citations({"output": [message_with_annotations(
            url_citation("https://a.example", "A", 0, 10),
            file_citation("file_1", "a.pdf", 2),
        )]})
        assert result.citations == [Citation(
            url="https://a.example", title="A", start_index=0, end_index=10,
        )]
        assert [f.file_id for f in result.file_citations] == ["file_1"]

    def test_first_occurrence_wins(self):
        result = extract_citations({"output": [
            message_with_annotations(url_citation("https://a.example", "First")),
            message_with_annotations(
                url_citation("https://a.example", "Second"),
                url_citation("https://b.example", "B"),
                file_citation("file_1", "one.pdf"),
                file_citation("file_1", "two.pdf"),
            ),
        ]})
        assert [(c.url, c.title) for c in result.citations] == [
            ("https://a.example", "First"),
            ("https://b.example", "B"),
        ]
        assert [f.filename for f in result.file_citations] == ["one.pdf"]

    def test_malformed_annotations_are_skipped(self):
        result = extract_citations({"output": [message_with_annotations(
            {"type": "url_citation", "url": "https://a.example"},
            {"type": "url_citation", "url": 5, "title": "x",
             "start_index": 0, "end_index": 1},
            {"type": "file_citation", "file_id": "f", "filename": "x",
             "index": "0"},
            {"type": "container_file_citation", "file_id": "c"},
            "not a dict",
        )]})
        assert result.citations == []
        assert result.file_citations == []

    def test_only_message_output_text_is_scanned(self):
        result = extract_citations({"output": [
            {"type": "reasoning", "content": [{
                "type": "output_text",
                "annotations": [url_citation("https://a.example")],
            }]},
            {"type": "message", "content": [{
                "type": "refusal",
                "annotations": [url_citation("https://b.example")],
            }]},
        ]})
        assert result.citations == []

    def test_missing_output(self):
        assert extract_citations({}).citations == []
        assert extract_citations(None).citations == []
        assert extract_citations({"output": "nope"}).file_citations == []


class TestMergeCitations:
    def test_keeps_existing_first(self):
        merged = merge_citations(["a1", "b1"], ["a2", "c1"], key=lambda s: s[0])
        assert merged == ("a1", "b1", "c1")
