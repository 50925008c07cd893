"""Typed (de)serialization of table documents"""

import json
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..utils.logger import get_logger
from .kv_store import KeyValueStore

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


def _load_document(store: KeyValueStore, key: str) -> Optional[Any]:
    raw = store.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Corrupt table ignored", key=key, error=str(e))
        return None


def load_records(store: KeyValueStore, key: str, model: Type[M]) -> List[M]:
    """Load ``{key: [...]}`` as a list of models, dropping invalid entries"""
    data = _load_document(store, key)
    if not isinstance(data, dict):
        return []
    items = data.get(key, [])
    if not isinstance(items, list):
        logger.warning("Unexpected table layout", key=key)
        return []
    out: List[M] = []
    for item in items:
        try:
            out.append(model(**item))
        except (ValidationError, TypeError) as e:
            logger.warning("Dropping invalid record", key=key, error=str(e))
    return out


def save_records(store: KeyValueStore, key: str, records: List[BaseModel]) -> None:
    payload = {key: [r.model_dump(mode="json") for r in records]}
    store.set(key, json.dumps(payload, indent=2, ensure_ascii=False))


def load_mapping(store: KeyValueStore, key: str, model: Type[M]) -> Dict[str, M]:
    """Load ``{key: {id: {...}}}`` as a dict of models, dropping invalid entries"""
    data = _load_document(store, key)
    if not isinstance(data, dict):
        return {}
    items = data.get(key, {})
    if not isinstance(items, dict):
        logger.warning("Unexpected table layout", key=key)
        return {}
    out: Dict[str, M] = {}
    for map_key, item in items.items():
        try:
            out[map_key] = model(**item)
        except (ValidationError, TypeError) as e:
            logger.warning("Dropping invalid record", key=key, error=str(e))
    return out


def save_mapping(store: KeyValueStore, key: str, records: Dict[str, BaseModel]) -> None:
    payload = {key: {k: r.model_dump(mode="json") for k, r in records.items()}}
    store.set(key, json.dumps(payload, indent=2, ensure_ascii=False))


def load_record(store: KeyValueStore, key: str, model: Type[M]) -> Optional[M]:
    """Load a single-record table"""
    data = _load_document(store, key)
    if not isinstance(data, dict):
        return None
    try:
        return model(**data)
    except (ValidationError, TypeError) as e:
        logger.warning("Dropping invalid record", key=key, error=str(e))
        return None


def save_record(store: KeyValueStore, key: str, record: BaseModel) -> None:
    store.set(key, record.model_dump_json(indent=2))
