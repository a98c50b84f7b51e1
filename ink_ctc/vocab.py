"""
CTC vocabulary: id 0 is the blank, ids 1.. map to itos[id - 1]
"""

import json
from pathlib import Path
from typing import List, Sequence

from .config import BLANK_ID


class CTCVocab:
    """Immutable id <-> character table"""

    def __init__(self, itos: Sequence[str]):
        self._itos = tuple(itos)
        self._stoi = {ch: i + 1 for i, ch in enumerate(self._itos)}
        self.blank = BLANK_ID

    @property
    def itos(self) -> List[str]:
        return list(self._itos)

    @property
    def size(self) -> int:
        """Number of model output classes, blank included"""
        return len(self._itos) + 1

    def __len__(self):
        return self.size

    def id_to_char(self, idx: int) -> str:
        """Character for a model id; blank and unknown ids give ''"""
        if idx <= 0:
            return ''
        pos = idx - 1
        return self._itos[pos] if pos < len(self._itos) else ''

    def char_to_id(self, ch: str) -> int:
        """Model id for a character, blank when it is not in the vocabulary"""
        return self._stoi.get(ch, self.blank)

    @classmethod
    def from_dict(cls, record):
        if 'itos' not in record:
            raise KeyError("Vocabulary record has no 'itos' list")
        return cls([str(ch) for ch in record['itos']])

    @classmethod
    def from_json_string(cls, text: str):
        return cls.from_dict(json.loads(text))

    @classmethod
    def from_file(cls, path):
        with open(Path(path), 'r', encoding='utf-8') as f:
            return cls.from_dict(json.load(f))
