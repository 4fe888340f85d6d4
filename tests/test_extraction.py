from texpatch.extraction import (
    edits_from_tool_call,
    extract_edits,
    find_diff_blocks,
    has_unterminated_block,
)
from texpatch.models import DeleteEdit, EditStatus, InsertEdit, ReplaceEdit


def _fence(body: str, language: str = "latex-diff") -> str:
    return f"```{language}\n{body}\n```"


def test_single_replacement_with_explanation():
    edits = extract_edits(_fence("@@ -12,2 @@ Merge the two sentences\n-First.\n-Second.\n+First and second."))

    assert len(edits) == 1
    edit = edits[0]
    assert isinstance(edit, ReplaceEdit)
    assert (edit.start_line, edit.original_line_count) == (12, 2)
    assert edit.content == "First and second."
    assert edit.original_text == "First.\nSecond."
    assert edit.explanation == "Merge the two sentences"
    assert edit.status == EditStatus.PENDING


def test_blocks_and_hunks_keep_reading_order():
    text = "\n\n".join([
        "Intro prose.",
        _fence("@@ -3,1 @@\n-c\n+C\n@@ -8,0 @@\n+new"),
        "Some more prose.",
        _fence("@@ -1,1 @@\n-a"),
    ])

    edits = extract_edits(text)

    assert [e.start_line for e in edits] == [3, 8, 1]
    assert [type(e) for e in edits] == [ReplaceEdit, InsertEdit, DeleteEdit]
    assert len({e.id for e in edits}) == 3


def test_unterminated_block_is_ignored():
    """A block the model is still streaming yields nothing until its fence closes."""
    text = _fence("@@ -2,1 @@\n-b\n+B") + "\n\n```latex-diff\n@@ -4,1 @@\n-d\n+D"

    edits = extract_edits(text)

    assert has_unterminated_block(text)
    assert [e.start_line for e in edits] == [2]


def test_other_fence_languages_are_ignored():
    text = _fence("@@ -2,1 @@\n-b\n+B", language="latex")
    assert find_diff_blocks(text) == []
    assert extract_edits(text) == []


def test_custom_fence_language():
    text = _fence("@@ -2,1 @@\n-b\n+B", language="diff")
    assert len(extract_edits(text, language="diff")) == 1


def test_header_without_count_consumes_one_line():
    (edit,) = extract_edits(_fence("@@ -4 @@\n-old\n+new"))
    assert (edit.start_line, edit.original_line_count) == (4, 1)


def test_unified_style_header_is_accepted():
    (edit,) = extract_edits(_fence("@@ -7,1 +7,2 @@\n-old\n+new\n+more"))
    assert (edit.start_line, edit.original_line_count) == (7, 1)
    assert edit.content == "new\nmore"


def test_copied_line_numbers_are_stripped():
    (edit,) = extract_edits(_fence("@@ -12,1 @@\n-12: \\section{Old}\n+12: \\section{New}"))
    assert edit.content == "\\section{New}"
    assert edit.original_text == "\\section{Old}"


def test_body_disagreeing_with_header_is_skipped():
    edits = extract_edits(_fence("@@ -3,2 @@\n-only one line\n+x\n@@ -9,1 @@\n-i\n+I"))
    assert [e.start_line for e in edits] == [9]


def test_context_lines_narrow_the_edit():
    (edit,) = extract_edits(_fence("@@ -3,3 @@\n line three\n-line four\n+LINE FOUR\n line five"))

    assert (edit.start_line, edit.original_line_count) == (4, 1)
    assert edit.content == "LINE FOUR"


def test_blank_context_line_counts():
    (edit,) = extract_edits(_fence("@@ -5,2 @@\n \n-text\n+Text"))
    assert (edit.start_line, edit.original_line_count) == (6, 1)


def test_pure_insertion_and_deletion():
    edits = extract_edits(_fence("@@ -3,0 @@\n+\\usepackage{graphicx}\n@@ -2,2 @@\n-a\n-b"))

    insert, delete = edits
    assert isinstance(insert, InsertEdit)
    assert (insert.start_line, insert.original_line_count) == (3, 0)
    assert isinstance(delete, DeleteEdit)
    assert (delete.start_line, delete.original_line_count, delete.content) == (2, 2, "")


def test_comment_line_after_header_is_explanation():
    (edit,) = extract_edits(_fence("@@ -4 @@\n# Tighten wording\n-old\n+new"))
    assert edit.explanation == "Tighten wording"


def test_hunks_without_changes_or_valid_header_are_skipped():
    edits = extract_edits(_fence("@@ nonsense @@\n-a\n+b\n@@ -2,1 @@\n unchanged"))
    assert edits == []


def test_crlf_input():
    text = "```latex-diff\r\n@@ -2,1 @@\r\n-b\r\n+B\r\n```"
    (edit,) = extract_edits(text)
    assert edit.content == "B"


def test_tool_call_payload():
    payload = {
        "edits": [
            {"position": {"line": 3}, "content": "x", "originalLineCount": 1, "explanation": "why"},
            {"startLine": 5, "editType": "insert", "content": "new"},
            {"line": 2, "editType": "delete"},
            {"line": "bad", "content": "y"},
            {"line": 4, "originalLineCount": 0, "content": ""},
            "junk",
        ]
    }

    edits = edits_from_tool_call(payload)

    assert [type(e) for e in edits] == [ReplaceEdit, InsertEdit, DeleteEdit]
    assert edits[0].explanation == "why"
    assert (edits[1].start_line, edits[1].original_line_count) == (5, 0)
    assert (edits[2].start_line, edits[2].original_line_count) == (2, 1)


def test_tool_call_replace_without_count_uses_content_lines():
    (edit,) = edits_from_tool_call([{"line": 2, "editType": "replace", "content": "a\nb"}])
    assert edit.original_line_count == 2


def test_tool_call_rejects_non_list_payloads():
    assert edits_from_tool_call(None) == []
    assert edits_from_tool_call({"edits": "nope"}) == []


def test_empty_line_inside_hunk_is_blank_context():
    (edit,) = extract_edits(_fence("@@ -5,3 @@\n\n-text\n+Text\n line seven"))

    assert (edit.start_line, edit.original_line_count) == (6, 1)
    assert edit.content == "Text"


def test_empty_lines_between_hunks_are_separators():
    edits = extract_edits(_fence("@@ -2,1 @@\n-b\n+B\n\n@@ -4,1 @@\n-d\n+D\n"))
    assert [e.start_line for e in edits] == [2, 4]
