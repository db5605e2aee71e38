import yaml

from ChapterMap.cli import main


def test_render_html(book_file, tmp_path):
    out = tmp_path / "notes.html"
    assert main(["render", str(book_file), str(out)]) == 0
    assert 'href="#chapter1"' in out.read_text(encoding="utf-8")


def test_render_docx_from_suffix(book_file, tmp_path):
    out = tmp_path / "notes.docx"
    assert main(["render", str(book_file), str(out)]) == 0
    assert out.read_bytes()[:2] == b"PK"


def test_render_default_output_path(book_file):
    assert main(["render", str(book_file)]) == 0
    assert book_file.with_suffix(".html").exists()


def test_dangling_reference_exit_code(tmp_path, capsys):
    source = tmp_path / "broken.md"
    source.write_text("- [Chapter XX](#chapterXX)\n", encoding="utf-8")
    out = tmp_path / "broken.html"

    assert main(["render", str(source), str(out)]) == 1
    assert "chapterXX" in capsys.readouterr().err
    assert not out.exists()


def test_malformed_document_exit_code(tmp_path, capsys):
    source = tmp_path / "open.md"
    source.write_text("## One\n\n```java\nint x;\n", encoding="utf-8")
    assert main(["render", str(source), str(tmp_path / "open.html")]) == 1
    assert "unterminated code fence" in capsys.readouterr().err


def test_missing_input(tmp_path, capsys):
    assert main(["check", str(tmp_path / "nope.md")]) == 1
    assert "not found" in capsys.readouterr().err


def test_check_yaml_report(book_file, capsys):
    assert main(["check", str(book_file), "--report", "yaml"]) == 0
    report = yaml.safe_load(capsys.readouterr().out)
    assert report["valid"] is True
    assert [entry["anchor"] for entry in report["entries"]] == ["chapter1", "chapter2"]


def test_check_orphans_do_not_fail(tmp_path, capsys):
    source = tmp_path / "orphan.md"
    source.write_text("- [One](#one)\n\n## One\n\n## Appendix\n", encoding="utf-8")
    assert main(["check", str(source)]) == 0
    assert "orphan: chapter 'Appendix'" in capsys.readouterr().out


def test_toc_command(book_file, capsys):
    assert main(["toc", str(book_file)]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines == ["Chapter 1 - Clean Code -> #chapter1", "Chapter 2 - Meaningful Names -> #chapter2"]


def test_config_and_override(book_file, tmp_path, capsys):
    config = tmp_path / "chaptermap.yaml"
    config.write_text("parser:\n  chapter_level: 3\n", encoding="utf-8")
    assert main(["toc", str(book_file), "--config", str(config), "--chapter-level", "2"]) == 0
    assert "#chapter2" in capsys.readouterr().out


def test_input_not_utf8(tmp_path, capsys):
    source = tmp_path / "latin.md"
    source.write_bytes(b"\xff\xfe# Notes\n")
    assert main(["check", str(source)]) == 1
    assert "not valid UTF-8" in capsys.readouterr().err


def test_input_is_directory(tmp_path, capsys):
    assert main(["check", str(tmp_path)]) == 1
    assert "cannot read input" in capsys.readouterr().err
