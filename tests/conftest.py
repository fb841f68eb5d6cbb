"""Shared pytest fixtures."""

from __future__ import annotations

import copy
import json
import re
import threading
import time
from types import SimpleNamespace
from typing import Any, Callable, Iterator

import pytest

import couchview.design.document as document_module
from couchview import Model, view_by
from couchview.db.connection import WriteResult

TAGS_MAP = """function(doc) {
  if (doc['couchrest-type'] == 'Post' && doc.tags) {
    doc.tags.forEach(function(tag) {
      emit(tag, 1);
    });
  }
}"""

_GUARD_RE = re.compile(r'\(doc\[("[^"]*")\] == ("[^"]*")\)')
_FIELD_RE = re.compile(r'\(doc\[("[^"]*")\] != null\)')


def _emulate(map_source: str) -> Callable[[dict], Iterator[tuple[Any, Any]]]:
    """Python stand-in for a generated map function."""
    guards = [(json.loads(k), json.loads(v)) for k, v in _GUARD_RE.findall(map_source)]
    fields = [json.loads(f) for f in _FIELD_RE.findall(map_source)]

    def run(doc: dict) -> Iterator[tuple[Any, Any]]:
        if all(doc.get(k) == v for k, v in guards) and all(doc.get(f) is not None for f in fields):
            key = doc[fields[0]] if len(fields) == 1 else [doc[f] for f in fields]
            yield key, None

    return run


def _tags_map(doc: dict) -> Iterator[tuple[Any, Any]]:
    if doc.get("couchrest-type") == "Post" and doc.get("tags"):
        for tag in doc["tags"]:
            yield tag, 1


class FakeCouch:
    """In-memory Connection that runs generated map functions in Python."""

    def __init__(self, url: str = "http://fake:5984/blog", write_delay: float = 0.0) -> None:
        self.url = url
        self.docs: dict[str, dict] = {}
        self.design: dict[str, dict] = {}
        self.writes: list[tuple[str, dict, bool]] = []
        self.queries: list[tuple[str, str, dict]] = []
        self.python_maps: dict[str, Callable] = {TAGS_MAP: _tags_map}
        self.write_delay = write_delay
        self._lock = threading.Lock()

    def save(self, doc: dict) -> dict:
        doc = dict(doc)
        doc.setdefault("_id", f"doc-{len(self.docs) + 1:03d}")
        doc.setdefault("_rev", "1-abc")
        self.docs[doc["_id"]] = doc
        return doc

    def write_design_document(self, doc_id, views, overwrite=False):
        time.sleep(self.write_delay)
        with self._lock:
            self.writes.append((doc_id, copy.deepcopy(views), overwrite))
            existing = self.design.get(doc_id)
            if existing is None:
                self.design[doc_id] = copy.deepcopy(views)
                return WriteResult.CREATED
            if existing == views:
                return WriteResult.UNCHANGED
            if not overwrite:
                return WriteResult.CONFLICT
            self.design[doc_id] = copy.deepcopy(views)
            return WriteResult.UPDATED

    def query_view(self, doc_id, view, params):
        self.queries.append((doc_id, view, dict(params)))
        definition = self.design[doc_id][view]
        mapper = self.python_maps.get(definition["map"]) or _emulate(definition["map"])

        rows = [
            {"id": doc_id_, "key": key, "value": value}
            for doc_id_, doc in sorted(self.docs.items())
            for key, value in mapper(doc)
        ]
        rows.sort(key=lambda r: (r["key"], r["id"]))
        if "key" in params:
            rows = [r for r in rows if r["key"] == params["key"]]
        if "startkey" in params:
            rows = [r for r in rows if r["key"] >= params["startkey"]]
        if "endkey" in params:
            rows = [r for r in rows if r["key"] <= params["endkey"]]
        if params.get("descending"):
            rows.reverse()

        if params.get("reduce", "reduce" in definition):
            if definition["reduce"] == "_count":
                return {"rows": [{"key": None, "value": len(rows)}]}
            return {"rows": [{"key": None, "value": sum(r["value"] for r in rows)}]}

        total = len(rows)
        skip = params.get("skip", 0)
        rows = rows[skip:]
        if "limit" in params:
            rows = rows[: params["limit"]]
        if params.get("include_docs"):
            for r in rows:
                r["doc"] = copy.deepcopy(self.docs[r["id"]])
        return {"total_rows": total, "offset": skip, "rows": rows}


@pytest.fixture(autouse=True)
def fresh_registry(monkeypatch):
    """Every test starts with an empty namespace table."""
    monkeypatch.setattr(document_module, "_REGISTRY", {})


@pytest.fixture
def couch():
    return FakeCouch()


@pytest.fixture
def blog(couch):
    """Post and Comment models sharing the 'Blog' design document."""

    class Post(Model):
        design_namespace = "Blog"
        views = (
            view_by("date"),
            view_by("user_id", "date"),
            view_by("title", descending=True),
            view_by("tags", map=TAGS_MAP, reduce="_count"),
        )

    class Comment(Model):
        design_namespace = "Blog"
        views = (view_by("date"),)

    Post.use_database(couch)
    Comment.use_database(couch)
    return SimpleNamespace(Post=Post, Comment=Comment, couch=couch)
