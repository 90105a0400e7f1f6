"""Tests for request key derivation."""

import hashlib

from labelscan.pipeline.request_key import build_request_key, compute_content_hash, compute_file_hash


class TestContentHash:
    """Tests for content hashing."""

    def test_bytes_and_file_agree(self, tmp_path):
        """Hashing bytes or the file holding them gives the same digest."""
        data = b"\xff\xd8fake jpeg payload" * 1000
        path = tmp_path / "label.jpg"
        path.write_bytes(data)

        expected = hashlib.sha256(data).hexdigest()
        assert compute_content_hash(data) == expected
        assert compute_content_hash(path) == expected
        assert compute_content_hash(str(path)) == expected
        assert compute_file_hash(path, chunk_size=7) == expected


class TestBuildRequestKey:
    """Tests for the key convention."""

    def test_format(self):
        digest = hashlib.sha256(b"img").hexdigest()
        assert build_request_key(b"img", 3, "v2") == f"v2:{digest}:3"

    def test_default_pipeline_version(self):
        """Without an explicit version the configured one is used."""
        assert build_request_key(b"img").startswith("v1:")
        assert build_request_key(b"img").endswith(":0")

    def test_key_changes_with_inputs(self):
        """Content, profile and pipeline version each change the key."""
        base = build_request_key(b"img", 1, "v1")

        assert build_request_key(b"img", 1, "v1") == base
        assert build_request_key(b"other", 1, "v1") != base
        assert build_request_key(b"img", 2, "v1") != base
        assert build_request_key(b"img", 1, "v2") != base
