"""Reverse lookup of labelhashes.

The registry only ever sees `keccak256(label)`; the label itself must come from an external
source. `RainbowTable` is the simplest one: a precomputed mapping of known labels.
"""

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from ens_indexer.codec import is_valid_label
from ens_indexer.codec import labelhash

_logger = logging.getLogger(__name__)


class LabelOracle(Protocol):
    def name_by_hash(self, labelhash: str) -> str | None: ...


class RainbowTable:
    def __init__(self, labels: Iterable[str] = ()) -> None:
        self._labels: dict[str, str] = {}
        self.update(labels)

    def __len__(self) -> int:
        return len(self._labels)

    def update(self, labels: Iterable[str]) -> None:
        for label in labels:
            if not label or not is_valid_label(label):
                continue
            self._labels[labelhash(label)] = label

    def name_by_hash(self, labelhash: str) -> str | None:
        return self._labels.get(labelhash.lower())

    @classmethod
    def from_file(cls, path: Path, labels: Iterable[str] = ()) -> 'RainbowTable':
        _logger.info('Loading labels from `%s`', path)
        table = cls(labels)
        with path.open() as file:
            table.update(line.strip() for line in file)
        _logger.info('%s labels loaded', len(table))
        return table
