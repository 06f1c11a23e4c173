from itertools import islice

from app.packages.drive.crud.file_node import escape_like
from app.packages.drive.utils.path_utils import join_path, numbered_names, split_name


def test_join_path():
    assert join_path("", "Docs") == "/Docs"
    assert join_path(None, "Docs") == "/Docs"
    assert join_path("/Docs", "Work") == "/Docs/Work"
    assert join_path("/Docs/", "Work") == "/Docs/Work"


def test_split_name():
    assert split_name("report.pdf") == ("report", ".pdf")
    assert split_name("archive.tar.gz") == ("archive.tar", ".gz")
    assert split_name("README") == ("README", "")
    assert split_name(".env") == (".env", "")


def test_numbered_names():
    assert list(islice(numbered_names("x.pdf"), 3)) == ["x.pdf", "x (1).pdf", "x (2).pdf"]
    assert list(islice(numbered_names("Makefile"), 2)) == ["Makefile", "Makefile (1)"]


def test_escape_like():
    assert escape_like("100%") == "100\\%"
    assert escape_like("a_b") == "a\\_b"
    assert escape_like("c:\\tmp") == "c:\\\\tmp"
