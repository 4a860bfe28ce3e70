"""Tests for the Hubfs read/write surface against the in-memory object store."""

import asyncio

import pytest

from hubfs.api_clients.github_client import GitHubObjectStore
from hubfs.exceptions import (
    ErrorKind,
    HubfsConfigError,
    HubfsFileExistsError,
    HubfsFileNotFoundError,
    InvalidRepositoryError,
    ObjectStoreError,
)
from hubfs.filesystem import Hubfs, normalize_path
from hubfs.services.write_coordinator import WriteCoordinatorRegistry
from hubfs.utils.config_manager import HubfsConfig
from tests.fakes import InMemoryObjectStore


async def _settle(fs):
    await asyncio.sleep(fs.config.settle_delay * 5)


class TestReadWrite:
    @pytest.mark.asyncio
    async def test_text_round_trip(self, fs):
        await fs.write_file("hello.txt", "Hello GitHub")

        assert await fs.read_file("hello.txt", encoding="utf8") == "Hello GitHub"

    @pytest.mark.asyncio
    async def test_read_without_encoding_returns_bytes(self, fs):
        await fs.write_file("data.bin", b"\x00\x01\xff")

        assert await fs.read_file("data.bin") == b"\x00\x01\xff"

    @pytest.mark.asyncio
    async def test_leading_slash_is_ignored(self, fs, store):
        await fs.write_file("/docs/a.md", "# A")

        assert "docs/a.md" in store.files()
        assert await fs.read_file("docs/a.md", encoding="utf8") == "# A"
        assert await fs.read_file("/docs/a.md", encoding="utf8") == "# A"

    @pytest.mark.asyncio
    async def test_large_file_round_trip(self, fs, store):
        payload = bytes(range(256)) * 16
        assert len(payload) > store.contents_size_limit

        await fs.write_file("big.bin", payload)

        assert await fs.read_file("big.bin") == payload
        assert "get blob" in store.calls

    @pytest.mark.asyncio
    async def test_existing_file_overwritten(self, fs, store):
        store.seed("a.txt", b"old")

        await fs.write_file("a.txt", "new")

        assert await fs.read_file("a.txt", encoding="utf8") == "new"

    @pytest.mark.asyncio
    async def test_sequential_updates_each_commit(self, fs, store):
        await fs.write_file("a.txt", "one")
        await _settle(fs)
        await fs.write_file("a.txt", "two")

        assert await fs.read_file("a.txt", encoding="utf8") == "two"
        messages = [c.message for c in store.history()]
        assert messages == ["Update/create a.txt", "Update/create a.txt", "Initial commit"]

    @pytest.mark.asyncio
    async def test_custom_message_and_branch(self, fs, store):
        store.create_branch("dev")

        await fs.write_file("a.txt", "x", message="Add a", branch="dev")

        assert store.history("dev")[0].message == "Add a"
        assert "a.txt" not in store.files("main")
        assert await fs.read_file("a.txt", encoding="utf8", ref="dev") == "x"

    @pytest.mark.asyncio
    async def test_base64_encoding(self, fs):
        await fs.write_file("a.bin", "aGVsbG8=", encoding="base64")

        assert await fs.read_file("a.bin") == b"hello"
        assert await fs.read_file("a.bin", encoding="base64") == "aGVsbG8="

    @pytest.mark.asyncio
    async def test_read_at_tag(self, fs, store):
        store.seed("a.txt", b"v1")
        store.refs["tags/v1"] = store.refs["heads/main"]
        store.seed("a.txt", b"v2")

        assert await fs.read_file("a.txt", ref="v1") == b"v1"
        assert await fs.read_file("a.txt") == b"v2"


class TestConcurrentWrites:
    @pytest.mark.asyncio
    async def test_concurrent_writes_all_land(self, fs, store):
        await asyncio.gather(
            *(fs.write_file(f"files/{i}.txt", f"content {i}") for i in range(20))
        )

        files = store.files()
        for i in range(20):
            assert files[f"files/{i}.txt"] == f"content {i}".encode()
        assert store.lost_updates == 0
        assert store.calls.count("put contents") == 1

    @pytest.mark.asyncio
    async def test_concurrent_writes_with_latency(self, config):
        store = InMemoryObjectStore(latency=0.002)
        fs = Hubfs(config, store=store)

        await asyncio.gather(*(fs.write_file(f"{i}.txt", str(i)) for i in range(15)))

        assert set(store.files()) == {f"{i}.txt" for i in range(15)}
        assert store.lost_updates == 0

    @pytest.mark.asyncio
    async def test_shared_registry_serializes_across_handles(self, config, store):
        registry = WriteCoordinatorRegistry()
        first = Hubfs(config, store=store, registry=registry)
        second = Hubfs(config, store=store, registry=registry)

        assert first.coordinator is second.coordinator

        await asyncio.gather(
            *(first.write_file(f"a{i}.txt", "a") for i in range(5)),
            *(second.write_file(f"b{i}.txt", "b") for i in range(5)),
        )

        assert len(store.files()) == 10
        assert store.lost_updates == 0

    @pytest.mark.asyncio
    async def test_default_handles_share_one_coordinator(self, config):
        store = InMemoryObjectStore(latency=0.001)
        first = Hubfs(config, store=store)
        second = Hubfs(config, store=store)

        assert first.registry is second.registry
        assert first.coordinator is second.coordinator

        await asyncio.gather(
            *(first.write_file(f"a{i}.txt", "a") for i in range(10)),
            *(second.write_file(f"b{i}.txt", "b") for i in range(10)),
        )

        assert len(store.files()) == 20
        assert store.lost_updates == 0

    @pytest.mark.asyncio
    async def test_private_registry_opts_out_of_sharing(self, config, store):
        shared = Hubfs(config, store=store)
        private = Hubfs(config, store=store, registry=WriteCoordinatorRegistry())

        assert private.registry is not shared.registry
        assert private.coordinator is not shared.coordinator

    @pytest.mark.asyncio
    async def test_other_api_host_gets_its_own_coordinator(self, config, store):
        enterprise = HubfsConfig(
            owner=config.owner,
            repo=config.repo,
            token=config.token,
            base_url="https://github.example.com/api/v3",
        )

        enterprise_fs = Hubfs(enterprise, store=store)
        public_fs = Hubfs(config, store=store)

        assert enterprise_fs.coordinator is not public_fs.coordinator

    def test_default_registry_is_per_event_loop(self, config, store):
        fs = Hubfs(config, store=store)

        async def current():
            return fs.registry

        assert asyncio.run(current()) is not asyncio.run(current())

    def test_default_registry_needs_running_loop(self, fs):
        with pytest.raises(RuntimeError):
            fs.registry

    @pytest.mark.asyncio
    async def test_queued_write_uses_batched_pipeline(self, fs, store):
        await fs.write_file("a.txt", "x", queued=True)

        assert "put contents" not in store.calls
        assert store.files()["a.txt"] == b"x"


class TestErrors:
    @pytest.mark.asyncio
    async def test_missing_file(self, fs):
        with pytest.raises(HubfsFileNotFoundError, match="File not found"):
            await fs.read_file("nope.txt")

    @pytest.mark.asyncio
    async def test_invalid_repository_on_read(self, config):
        fs = Hubfs(config, store=InMemoryObjectStore(exists=False))

        with pytest.raises(InvalidRepositoryError, match="Invalid repo"):
            await fs.read_file("a.txt")

    @pytest.mark.asyncio
    async def test_invalid_repository_on_write(self, config):
        config.default_branch = "main"
        fs = Hubfs(config, store=InMemoryObjectStore(exists=False))

        with pytest.raises(InvalidRepositoryError, match="Invalid repo"):
            await fs.write_file("a.txt", "x")

    @pytest.mark.asyncio
    async def test_missing_branch_on_write(self, fs):
        with pytest.raises(InvalidRepositoryError, match="Invalid branch: nope"):
            await fs.write_file("a.txt", "x", branch="nope")

    @pytest.mark.asyncio
    async def test_undecodable_content_reported_as_config_error(self, fs, store):
        store.seed("a.bin", b"\xff\xfe\x00")

        with pytest.raises(HubfsConfigError, match="Cannot decode content as utf8"):
            await fs.read_file("a.bin", encoding="utf8")

    @pytest.mark.asyncio
    async def test_rate_limited_write_does_not_disable_handle(self, fs, store):
        store.fail("put contents", ErrorKind.TRANSIENT, 403)

        with pytest.raises(ObjectStoreError) as exc_info:
            await fs.write_file("a.txt", "x")
        assert exc_info.value.kind is ErrorKind.TRANSIENT

        store.failures.clear()
        await _settle(fs)
        await fs.write_file("a.txt", "x")

        assert store.files()["a.txt"] == b"x"

    @pytest.mark.asyncio
    async def test_conflict_on_new_path_is_not_reported_as_missing_branch(self, fs, store):
        store.fail("put contents", ErrorKind.CONFLICT, 422)

        with pytest.raises(ObjectStoreError) as exc_info:
            await fs.write_file("new.txt", "x")

        assert not isinstance(exc_info.value, InvalidRepositoryError)
        assert exc_info.value.kind is ErrorKind.CONFLICT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("queued", [False, True])
    async def test_exclusive_write_rejects_existing_file(self, fs, store, queued):
        store.seed("a.txt", b"keep")

        with pytest.raises(HubfsFileExistsError, match="File already exists: a.txt"):
            await fs.write_file("a.txt", "x", flag="wx", queued=queued)

        assert store.files()["a.txt"] == b"keep"

    @pytest.mark.asyncio
    async def test_exclusive_write_creates_new_file(self, fs, store):
        await fs.write_file("a.txt", "x", flag="wx")

        assert store.files()["a.txt"] == b"x"

    @pytest.mark.asyncio
    async def test_unsupported_flag(self, fs, store):
        with pytest.raises(HubfsConfigError, match="Unsupported write flag"):
            await fs.write_file("a.txt", "x", flag="a")

        assert store.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["", "/", "//"])
    async def test_empty_path(self, fs, path):
        with pytest.raises(HubfsConfigError, match="Must provide a valid filename"):
            await fs.write_file(path, "x")

    @pytest.mark.asyncio
    async def test_invalid_data_type(self, fs):
        with pytest.raises(HubfsConfigError):
            await fs.write_file("a.txt", 123)

    def test_missing_token(self, store):
        with pytest.raises(HubfsConfigError, match="token"):
            Hubfs(HubfsConfig(owner="octocat", repo="hubfs-test"), store=store)


class TestDefaultBranch:
    @pytest.mark.asyncio
    async def test_looked_up_once(self, fs, store):
        await asyncio.gather(fs.default_branch(), fs.default_branch())
        await fs.write_file("a.txt", "x")
        await fs.read_file("a.txt")

        assert store.calls.count("get repository") == 1

    @pytest.mark.asyncio
    async def test_remote_default_branch_used(self, config, handle):
        store = InMemoryObjectStore(handle, default_branch="trunk")
        fs = Hubfs(config, store=store)

        await fs.write_file("a.txt", "x")

        assert "a.txt" in store.files("trunk")

    @pytest.mark.asyncio
    async def test_configured_branch_skips_lookup(self, config, store):
        store.create_branch("dev")
        config.default_branch = "dev"
        fs = Hubfs(config, store=store)

        await fs.write_file("a.txt", "x")

        assert "get repository" not in store.calls
        assert "a.txt" in store.files("dev")


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_injected_store_left_open(self, fs, store):
        async with fs:
            pass

        assert store.closed is False

    @pytest.mark.asyncio
    async def test_for_repo_builds_github_client(self):
        fs = Hubfs.for_repo("octocat", "notes", "tok", settle_delay=0.1)

        assert isinstance(fs._store, GitHubObjectStore)
        assert fs.handle.full_name == "octocat/notes"
        assert fs.config.settle_delay == 0.1
        await fs.aclose()

    @pytest.mark.asyncio
    async def test_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HUBFS_OWNER", "octocat")
        monkeypatch.setenv("HUBFS_REPO", "notes")
        monkeypatch.setenv("HUBFS_GITHUB_TOKEN", "tok")
        monkeypatch.setenv("HUBFS_DEFAULT_BRANCH", "dev")

        fs = Hubfs.from_environment(str(tmp_path))

        assert fs.handle.key == ("octocat", "notes")
        assert await fs.default_branch() == "dev"
        await fs.aclose()


class TestNormalizePath:
    def test_strips_leading_slashes(self):
        assert normalize_path("/a/b.txt") == "a/b.txt"
        assert normalize_path("a/b.txt") == "a/b.txt"

    def test_rejects_non_string(self):
        with pytest.raises(HubfsConfigError):
            normalize_path(None)
