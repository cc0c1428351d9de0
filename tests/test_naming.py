from pathlib import Path

from cardstamp.models import StudentRecord
from cardstamp.naming import build_archive_entry_name, ensure_container_path, sanitize_display_name


def test_each_non_alphanumeric_character_becomes_underscore() -> None:
    assert sanitize_display_name("Asha Rao") == "Asha_Rao"
    assert sanitize_display_name("O'Neil,  Jr.") == "O_Neil___Jr_"
    assert sanitize_display_name("José-Ü") == "Jos___"


def test_distinct_names_may_collide() -> None:
    assert sanitize_display_name("A B") == sanitize_display_name("A-B")


def test_blank_names_fall_back() -> None:
    assert sanitize_display_name(None) == "student"
    assert sanitize_display_name("   ") == "student"


def test_archive_entry_name() -> None:
    assert build_archive_entry_name(StudentRecord(full_name="Asha Rao")) == "Asha_Rao_idcard.png"
    assert build_archive_entry_name(StudentRecord(), ".PNG") == "student_idcard.png"


def test_ensure_container_path(tmp_path: Path) -> None:
    assert ensure_container_path(tmp_path, "idcards.zip") == tmp_path / "idcards.zip"
    assert ensure_container_path(tmp_path / "batch", "idcards.pdf") == tmp_path / "batch.pdf"
    assert ensure_container_path(tmp_path / "batch.PDF", "idcards.pdf") == tmp_path / "batch.PDF"
    assert ensure_container_path(tmp_path / "a:b.zip", "idcards.zip") == tmp_path / "a_b.zip"
