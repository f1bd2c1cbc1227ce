# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Decode context for one RAF read pass

Copyright 2025 DNAi inc.
"""

from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class DecodeContext:
    """
    State carried from one directory decode into later ones.

    A fresh context is created for every file. Decoders take the current
    context and return an updated copy; nothing is shared between files.

    Attributes:
        fuji_layout: Set by the FujiLayout tag when the sensor stores rows
                     twice as long and half as many of them
        fuji_width: First plausible width read from the RAFData block
        model: Camera model, used to pick model-specific tag variants
    """
    fuji_layout: bool = False
    fuji_width: Optional[int] = None
    model: Optional[str] = None

    def with_layout(self, layout_byte: int) -> 'DecodeContext':
        """Return a copy with the layout flag taken from the top bit."""
        return replace(self, fuji_layout=bool(layout_byte & 0x80))

    def with_width(self, width: int) -> 'DecodeContext':
        return replace(self, fuji_width=width)

    def with_model(self, model: Optional[str]) -> 'DecodeContext':
        return replace(self, model=model)
