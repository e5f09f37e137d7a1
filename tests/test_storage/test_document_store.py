"""Tests for the filesystem document store."""

import pytest

from cv_screener.errors import DocumentMissingError


class TestDocumentStore:
    def test_put_and_get(self, document_store):
        ref = document_store.put(b"%PDF-1.4 data", "John Doe CV.pdf")
        assert ref.endswith("John_Doe_CV.pdf")
        assert document_store.get(ref) == b"%PDF-1.4 data"
        assert document_store.exists(ref)

    def test_refs_are_unique(self, document_store):
        assert document_store.put(b"a", "cv.txt") != document_store.put(b"b", "cv.txt")

    def test_filename_path_components_dropped(self, document_store):
        ref = document_store.put(b"x", "../../etc/passwd")
        assert "/" not in ref
        assert (document_store.root / ref).exists()

    def test_default_name(self, document_store):
        assert document_store.put(b"x").endswith("document")

    def test_get_missing(self, document_store):
        with pytest.raises(DocumentMissingError):
            document_store.get("missing.pdf")

    def test_delete_is_tolerant(self, document_store):
        ref = document_store.put(b"x", "cv.txt")
        assert document_store.delete(ref) is True
        assert document_store.delete(ref) is False
        assert not document_store.exists(ref)

    def test_rejects_traversal_refs(self, document_store):
        with pytest.raises(ValueError):
            document_store.get("../outside.txt")
