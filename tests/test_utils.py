from __future__ import annotations

import pytest

from errors import ConfigurationError
from utils import (
    Credentials,
    check_output_folder,
    load_credentials,
    load_csv,
    resolve_filename_column,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in ("PRESERVICA_DOMAIN", "PRESERVICA_USERNAME", "PRESERVICA_PASSWORD"):
        monkeypatch.delenv(var, raising=False)


def test_load_csv_splits_header_and_rows(tmp_path):
    path = tmp_path / "in.csv"
    path.write_text("filename,dc:title\na,First\nb,\n", encoding="utf-8")

    source = load_csv(str(path))

    assert source.headers == ["filename", "dc:title"]
    assert source.rows == [["a", "First"], ["b", ""]]
    assert len(source) == 2
    assert list(source.records())[0] == {"filename": "a", "dc:title": "First"}


def test_load_csv_header_only(tmp_path):
    path = tmp_path / "in.csv"
    path.write_text("filename,dc:title\n", encoding="utf-8")

    source = load_csv(str(path))

    assert source.headers == ["filename", "dc:title"]
    assert len(source) == 0


def test_load_csv_rejects_duplicate_headers(tmp_path):
    path = tmp_path / "in.csv"
    path.write_text("filename,dc:title,dc:title\na,b,c\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="dc:title"):
        load_csv(str(path))


def test_load_csv_missing_and_empty_files(tmp_path):
    with pytest.raises(ConfigurationError):
        load_csv(str(tmp_path / "missing.csv"))

    empty = tmp_path / "empty.csv"
    empty.write_text("", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_csv(str(empty))


def test_resolve_filename_column_substring_uses_header_order():
    headers = ["old filename", "filename", "dc:title"]
    assert resolve_filename_column(headers, "filename", substring=True) == "old filename"
    assert resolve_filename_column(headers, "filename") == "filename"


def test_resolve_filename_column_substring_first_match_wins():
    headers = ["dc:title", "filename (original)", "filename (copy)"]
    assert resolve_filename_column(headers, "filename", substring=True) == "filename (original)"
    with pytest.raises(ConfigurationError):
        resolve_filename_column(headers, "filename")


def test_check_output_folder(tmp_path):
    assert check_output_folder(str(tmp_path)) == tmp_path

    a_file = tmp_path / "file.txt"
    a_file.write_text("x", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        check_output_folder(str(a_file))
    with pytest.raises(ConfigurationError):
        check_output_folder(str(tmp_path / "missing"))


def test_load_credentials_from_properties_file(tmp_path):
    props = tmp_path / "preservica.properties"
    props.write_text(
        "# Preservica account\n"
        "preservica.domain=eu.preservica.com\n"
        "preservica.username=archivist@example.org\n"
        "preservica.password=s3cret\n",
        encoding="utf-8",
    )

    assert load_credentials(str(props)) == Credentials("eu.preservica.com", "archivist@example.org", "s3cret")


def test_load_credentials_incomplete_file_disables_updates(tmp_path):
    props = tmp_path / "preservica.properties"
    props.write_text("preservica.domain=eu.preservica.com\npreservica.username=me\n", encoding="utf-8")

    assert load_credentials(str(props)) is None


def test_load_credentials_falls_back_to_environment(tmp_path, monkeypatch):
    props = tmp_path / "preservica.properties"
    props.write_text("preservica.domain=eu.preservica.com\n", encoding="utf-8")
    monkeypatch.setenv("PRESERVICA_USERNAME", "me")
    monkeypatch.setenv("PRESERVICA_PASSWORD", "pw")

    assert load_credentials(str(props)) == Credentials("eu.preservica.com", "me", "pw")


def test_load_credentials_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_credentials(str(tmp_path / "missing.properties"))
