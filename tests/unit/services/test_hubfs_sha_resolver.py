"""Tests for ShaResolver."""

import pytest

from hubfs.exceptions import ErrorKind, ObjectStoreError
from hubfs.services.sha_resolver import ShaResolver
from tests.fakes import InMemoryObjectStore


@pytest.fixture
def store():
    return InMemoryObjectStore(contents_size_limit=16)


@pytest.fixture
def resolver(store):
    return ShaResolver(store)


class TestResolve:
    @pytest.mark.asyncio
    async def test_small_file_resolved_via_contents_api(self, store, resolver):
        blob_sha = store.seed("a.txt", b"hello")

        assert await resolver.resolve("a.txt", "main") == blob_sha
        assert store.calls == ["get contents"]

    @pytest.mark.asyncio
    async def test_large_file_resolved_via_tree_walk(self, store, resolver):
        blob_sha = store.seed("big.bin", b"x" * 100)

        assert await resolver.resolve("big.bin", "main") == blob_sha
        assert store.calls == ["get contents", "get ref", "get commit", "get tree"]

    @pytest.mark.asyncio
    async def test_missing_path_raises_not_found(self, resolver):
        with pytest.raises(ObjectStoreError) as exc_info:
            await resolver.resolve("missing.txt", "main")

        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_invalid_repository_skips_tree_walk(self):
        store = InMemoryObjectStore(exists=False)
        resolver = ShaResolver(store)

        with pytest.raises(ObjectStoreError) as exc_info:
            await resolver.resolve("a.txt", "main")

        assert exc_info.value.kind is ErrorKind.INVALID_REPO
        assert store.calls == ["get contents"]

    @pytest.mark.asyncio
    async def test_transient_contents_failure_falls_back_to_tree_walk(self, store, resolver):
        blob_sha = store.seed("a.txt", b"hello")
        store.fail("get contents", ErrorKind.TRANSIENT, 502)

        assert await resolver.resolve("a.txt", "main") == blob_sha


class TestResolveSlow:
    @pytest.mark.asyncio
    async def test_nested_path_matched_exactly(self, store, resolver):
        store.seed("b.txt", b"top")
        nested = store.seed("dir/b.txt", b"nested")

        assert await resolver.resolve_slow("dir/b.txt", "main") == nested

    @pytest.mark.asyncio
    async def test_partial_path_does_not_match(self, store, resolver):
        store.seed("dir/b.txt", b"nested")

        with pytest.raises(ObjectStoreError) as exc_info:
            await resolver.resolve_slow("b.txt", "main")

        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_tag_ref_resolved(self, store, resolver):
        blob_sha = store.seed("a.txt", b"v1")
        store.refs["tags/v1.0"] = store.refs["heads/main"]
        store.seed("a.txt", b"v2")

        assert await resolver.resolve_slow("a.txt", "v1.0") == blob_sha

    @pytest.mark.asyncio
    async def test_commit_sha_ref_resolved(self, store, resolver):
        blob_sha = store.seed("a.txt", b"v1")
        commit_sha = store.refs["heads/main"]
        store.seed("a.txt", b"v2")

        assert await resolver.resolve_slow("a.txt", commit_sha) == blob_sha


class TestResolveCommit:
    @pytest.mark.asyncio
    async def test_branch_preferred_over_tag(self, store, resolver):
        branch_tip = store.refs["heads/main"]
        store.seed("a.txt", b"x")
        store.refs["tags/main"] = branch_tip

        assert await resolver.resolve_commit("main") == store.refs["heads/main"]

    @pytest.mark.asyncio
    async def test_unknown_ref_returned_as_commit_sha(self, resolver):
        assert await resolver.resolve_commit("abc123") == "abc123"

    @pytest.mark.asyncio
    async def test_non_not_found_errors_propagate(self, store, resolver):
        store.fail("get ref", ErrorKind.TRANSIENT, 500)

        with pytest.raises(ObjectStoreError) as exc_info:
            await resolver.resolve_commit("main")

        assert exc_info.value.kind is ErrorKind.TRANSIENT
