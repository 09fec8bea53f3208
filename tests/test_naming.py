"""Tests for destination file naming."""

import uuid
from datetime import datetime

from filerelay.transfer import OutputNamer, OutputNamingMode
from filerelay.transfer.naming import split_extension

_FIXED = datetime(2024, 3, 1, 14, 5, 9)


def _namer(mode, pattern=None) -> OutputNamer:
    return OutputNamer(
        mode,
        pattern,
        clock=lambda: _FIXED,
        uuid_factory=lambda: uuid.UUID("12345678-1234-5678-1234-567812345678"),
    )


def test_original_mode_keeps_name() -> None:
    assert _namer(OutputNamingMode.ORIGINAL).name_for("invoice.pdf") == "invoice.pdf"


def test_timestamped_mode_inserts_stamp_before_extension() -> None:
    namer = _namer("Add Timestamp")

    assert namer.name_for("invoice.pdf") == "invoice_20240301140509.pdf"
    assert namer.name_for("README") == "README_20240301140509"


def test_custom_pattern_substitutes_tokens() -> None:
    namer = _namer("Custom", "{original_name}_{date}{extension}")

    assert namer.name_for("invoice.pdf") == "invoice_20240301.pdf"


def test_custom_pattern_with_uuid_and_timestamp() -> None:
    namer = _namer(OutputNamingMode.CUSTOM_PATTERN, "{timestamp}-{uuid}{extension}")

    assert namer.name_for("a.txt") == "20240301140509-12345678-1234-5678-1234-567812345678.txt"


def test_custom_mode_without_pattern_uses_original() -> None:
    namer = _namer(OutputNamingMode.CUSTOM_PATTERN, "  ")

    assert namer.mode is OutputNamingMode.ORIGINAL
    assert namer.name_for("a.txt") == "a.txt"


def test_unusable_generated_names_fall_back() -> None:
    assert _namer("Custom", "../{original_name}").name_for("a.txt") == "a.txt"
    assert _namer("Custom", "{extension}").name_for("README") == "README"


def test_split_extension_uses_last_dot() -> None:
    assert split_extension("archive.tar.gz") == ("archive.tar", ".gz")
    assert split_extension(".env") == (".env", "")
    assert split_extension("noext") == ("noext", "")
