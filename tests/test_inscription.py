"""
Tests for inscription envelopes
"""
import pytest

from ordbuilder.inscription import Inscription, append_batch_reveal_script


def test_envelope_items():
    inscription = Inscription(content_type="text/plain;charset=utf-8", body=b"hi", metaprotocol="brc-20")

    assert inscription.envelope() == [
        "OP_0", "OP_IF", "6f7264",
        "OP_1", b"text/plain;charset=utf-8".hex(),
        "07", b"brc-20".hex(),
        "OP_0", b"hi".hex(),
        "OP_ENDIF",
    ]


def test_empty_inscription():
    assert Inscription().envelope() == ["OP_0", "OP_IF", "6f7264", "OP_ENDIF"]


def test_body_and_metadata_are_chunked():
    inscription = Inscription(body=b"\x01" * 1200, metadata=b"\x02" * 600)
    items = inscription.envelope()

    assert items[3:7] == ["05", "02" * 520, "05", "02" * 80]
    body = items[items.index("OP_0", 1) + 1:-1]
    assert [len(chunk) // 2 for chunk in body] == [520, 520, 160]


def test_batch_reveal_script_appends_in_order():
    first = Inscription(body=b"a")
    second = Inscription(body=b"b")
    items = append_batch_reveal_script([first, second], ["prefix"])

    assert items == ["prefix"] + first.envelope() + second.envelope()


def test_from_file(tmp_path):
    path = tmp_path / "note.txt"
    path.write_bytes(b"gm")

    inscription = Inscription.from_file(path, metaprotocol="test")

    assert inscription.content_type == "text/plain;charset=utf-8"
    assert inscription.body == b"gm"
    assert inscription.metaprotocol == "test"


def test_from_file_binary(tmp_path):
    path = tmp_path / "image.png"
    path.write_bytes(b"\x89PNG")
    assert Inscription.from_file(path).content_type == "image/png"


def test_from_file_unknown_extension(tmp_path):
    path = tmp_path / "blob.unknownext"
    path.write_bytes(b"?")
    with pytest.raises(ValueError):
        Inscription.from_file(path)
