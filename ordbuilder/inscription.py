"""
Inscription envelopes

An inscription is carried in a tapscript leaf inside an envelope that is never
executed:

    OP_0 OP_IF
        <"ord">
        OP_1 <content_type>
        [<07> <metaprotocol>]
        [<05> <metadata chunk> ...]
        OP_0 <body chunk> [<body chunk> ...]
    OP_ENDIF

The envelope items are returned in bitcoin-utils Script item form so they can
be appended after the `<pubkey> OP_CHECKSIG` prefix of a reveal script.
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ordbuilder.config import INSCRIPTION_CONFIG

__all__ = ["Inscription", "append_batch_reveal_script"]

METADATA_TAG = "05"
METAPROTOCOL_TAG = "07"


def _chunks(data: bytes, size: int = INSCRIPTION_CONFIG["max_push_size"]) -> list[str]:
    """Split data into at-most-`size`-byte pushes, hex encoded."""
    return [data[i:i + size].hex() for i in range(0, len(data), size)]


@dataclass
class Inscription:
    content_type: Optional[str] = None
    body: Optional[bytes] = None
    metaprotocol: Optional[str] = None
    metadata: Optional[bytes] = None

    @classmethod
    def from_file(cls, path, metaprotocol: Optional[str] = None,
                  metadata: Optional[bytes] = None) -> Inscription:
        """Read an inscription body from `path`, guessing its content type from the extension."""
        path = Path(path)
        body = path.read_bytes()

        content_type, _encoding = mimetypes.guess_type(path.name)
        if content_type is None:
            raise ValueError(f"unsupported file extension for {path.name}")
        if content_type.startswith("text/"):
            content_type = f"{content_type};charset=utf-8"

        return cls(content_type=content_type, body=body, metaprotocol=metaprotocol, metadata=metadata)

    def envelope(self) -> list[str]:
        items = ["OP_0", "OP_IF", INSCRIPTION_CONFIG["ord_marker"].hex()]

        if self.content_type is not None:
            items += ["OP_1", self.content_type.encode("utf-8").hex()]

        if self.metaprotocol is not None:
            items += [METAPROTOCOL_TAG, self.metaprotocol.encode("utf-8").hex()]

        if self.metadata is not None:
            for chunk in _chunks(self.metadata):
                items += [METADATA_TAG, chunk]

        if self.body is not None:
            items.append("OP_0")
            items += _chunks(self.body)

        items.append("OP_ENDIF")
        return items

    def append_reveal_script(self, items: list) -> list:
        return items + self.envelope()


def append_batch_reveal_script(inscriptions: list[Inscription], items: list) -> list:
    """Append one envelope per inscription, in order."""
    for inscription in inscriptions:
        items = inscription.append_reveal_script(items)
    return items
