import json

import pytest

from texpatch.cli import main


@pytest.fixture
def doc(tmp_path):
    path = tmp_path / "paper.tex"
    path.write_text("A\nB\nC\nD", encoding="utf-8")
    return path


def test_number(doc, capsys):
    main(["number", str(doc)])
    assert capsys.readouterr().out == "1: A\n2: B\n3: C\n4: D\n"


def test_intent(capsys):
    main(["intent", "Only view the document"])
    data = json.loads(capsys.readouterr().out)
    assert data["allow_insert"] is False
    assert data["is_read_only"] is True


def test_extract_json(tmp_path, capsys):
    reply = tmp_path / "reply.md"
    reply.write_text("Sure.\n\n```latex-diff\n@@ -2,1 @@ Shout\n-B\n+BEE\n```\n", encoding="utf-8")

    main(["extract", str(reply), "--json"])

    (edit,) = json.loads(capsys.readouterr().out)
    assert edit["kind"] == "replace"
    assert edit["start_line"] == 2
    assert edit["explanation"] == "Shout"


def test_diff_summary(doc, tmp_path, capsys):
    modified = tmp_path / "modified.tex"
    modified.write_text("A\nX\nB\nC\nD", encoding="utf-8")

    main(["diff", str(doc), str(modified)])

    assert "[+] L2: 'X'" in capsys.readouterr().out


def test_apply_tool_payload(doc, tmp_path):
    changes = tmp_path / "edits.json"
    changes.write_text(json.dumps({"edits": [
        {"line": 2, "content": "BEE", "originalLineCount": 1},
        {"line": 4, "editType": "delete"},
    ]}), encoding="utf-8")

    main(["apply", str(doc), str(changes)])

    output = tmp_path / "paper_edited.tex"
    assert output.read_text(encoding="utf-8") == "A\nBEE\nC"


def test_apply_blocked_by_prompt(doc, tmp_path, capsys):
    changes = tmp_path / "edits.json"
    changes.write_text(json.dumps([{"line": 2, "content": "BEE", "originalLineCount": 1}]), encoding="utf-8")
    output = tmp_path / "out.tex"

    main(["apply", str(doc), str(changes), "-o", str(output), "--prompt", "just review it"])

    assert output.read_text(encoding="utf-8") == "A\nB\nC\nD"
    assert "Blocked: Replacement not allowed" in capsys.readouterr().err


def test_apply_with_conflicts_exits_nonzero(doc, tmp_path):
    changes = tmp_path / "edits.json"
    changes.write_text(json.dumps([
        {"line": 2, "content": "X", "originalLineCount": 2},
        {"line": 3, "content": "Y", "originalLineCount": 1},
    ]), encoding="utf-8")
    output = tmp_path / "out.tex"

    with pytest.raises(SystemExit) as excinfo:
        main(["apply", str(doc), str(changes), "-o", str(output)])

    assert excinfo.value.code == 1
    assert output.read_text(encoding="utf-8") == "A\nB\nY\nD"


def test_missing_file_exits(tmp_path):
    with pytest.raises(SystemExit):
        main(["number", str(tmp_path / "nope.tex")])
