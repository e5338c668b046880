"""
In-memory pipe catalog.

The viewer ships its pipe network as a CityJSON-style document:

.. code-block:: json

    {"CityObjects": {"p1": {"shape_type": 16,
                             "attributes": {"radius": 300, ...},
                             "geometry": [{"type": "LineString",
                                           "vertices": [[0, 0, 0], [0, 10, 0]]}]}}}

``parse_catalog`` turns such a document (or a plain list of objects)
into :class:`PipeRecord` instances and :class:`PipeCatalog` keeps them
in memory, keyed by id.  The catalog is shared by all requests, so
access is serialised with a re-entrant lock.  Nothing is persisted.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import RLock
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .coordinates import PipeRecord, Segment3, map_pipe_to_segment, pipe_record_from_dict
from .cross_section import PipeSolid, make_pipe_solid

logger = logging.getLogger(__name__)


def _resolve_shape_type(code: Any, shape_types: Optional[Mapping[str, Any]]) -> Any:
    if shape_types is None or code is None:
        return code
    return shape_types.get(str(code), code)


def parse_catalog(
    document: Union[Mapping[str, Any], List[Any]],
    shape_types: Optional[Mapping[str, Any]] = None,
) -> List[PipeRecord]:
    """Parse a catalog document into pipe records.

    Args:
        document: Mapping with a ``CityObjects`` mapping, or a list of
            objects each carrying an ``id``.
        shape_types: Optional lookup from shape code to shape name
            (for example ``{"16": "Cylinder"}``).  Codes without an entry
            are kept as is.

    Returns:
        The parsed records in document order.  Objects without geometry
        are skipped.

    Raises:
        ValueError: If the document has neither shape.
    """
    if isinstance(document, Mapping):
        if "CityObjects" not in document:
            raise ValueError("catalog document has no 'CityObjects'")
        city_objects = document.get("CityObjects") or {}
        if not isinstance(city_objects, Mapping):
            raise ValueError("'CityObjects' must be a mapping")
        items = list(city_objects.items())
    elif isinstance(document, list):
        items = [(str(obj.get("id", idx)), obj) for idx, obj in enumerate(document) if isinstance(obj, Mapping)]
    else:
        raise ValueError("catalog document must be a mapping or a list")

    records: List[PipeRecord] = []
    for key, obj in items:
        if not isinstance(obj, Mapping):
            logger.warning("Catalog object %s is not a mapping; skipped", key)
            continue
        if shape_types is not None and obj.get("shape_type") is not None:
            obj = dict(obj)
            obj["shape_type"] = _resolve_shape_type(obj["shape_type"], shape_types)
        record = pipe_record_from_dict(str(key), obj)
        if record is None:
            logger.warning("Catalog object %s has no usable geometry; skipped", key)
            continue
        records.append(record)
    return records


def load_catalog_file(
    path: Union[str, Path],
    shape_types: Optional[Mapping[str, Any]] = None,
) -> List[PipeRecord]:
    """Read and parse a catalog JSON file."""
    with open(path, "r", encoding="utf-8") as fh:
        document = json.load(fh)
    return parse_catalog(document, shape_types)


class PipeCatalog:
    """Thread-safe registry of pipe records."""

    def __init__(self, records: Iterable[PipeRecord] = ()) -> None:
        self._lock = RLock()
        self._records: Dict[str, PipeRecord] = {}
        self.replace(records)

    def replace(self, records: Iterable[PipeRecord]) -> int:
        with self._lock:
            self._records = {}
            for record in records:
                self._records[record.pipe_id] = record
            return len(self._records)

    def add(self, record: PipeRecord) -> None:
        with self._lock:
            self._records[record.pipe_id] = record

    def get(self, pipe_id: str) -> Optional[PipeRecord]:
        with self._lock:
            return self._records.get(pipe_id)

    def list_records(self) -> List[PipeRecord]:
        with self._lock:
            return list(self._records.values())

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, pipe_id: object) -> bool:
        with self._lock:
            return pipe_id in self._records

    def segment(self, pipe_id: str) -> Optional[Segment3]:
        record = self.get(pipe_id)
        if record is None:
            return None
        return map_pipe_to_segment(record)

    def solid(self, pipe_id: str) -> Optional[PipeSolid]:
        segment = self.segment(pipe_id)
        if segment is None:
            return None
        return make_pipe_solid(pipe_id, segment)

    def solids(self) -> List[PipeSolid]:
        """Solids of every mappable pipe; unmappable records are left out."""
        result: List[PipeSolid] = []
        for record in self.list_records():
            segment = map_pipe_to_segment(record)
            if segment is None:
                continue
            result.append(make_pipe_solid(record.pipe_id, segment))
        return result


_catalog = PipeCatalog()


def get_catalog() -> PipeCatalog:
    """Return the process-wide catalog used by the API."""
    return _catalog
