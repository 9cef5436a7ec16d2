from ledgerfeed.infrastructure.cache.stores import DiskKeyValueStore, MemoryKeyValueStore, TimestampedCacheStore


def test_memory_store_evicts_oldest_insertion():
    store = MemoryKeyValueStore(max_items=2)
    store.set("a", 1)
    store.set("b", 2)
    store.set("c", 3)
    assert store.get("a") is None
    assert store.get("b") == 2
    assert store.get("c") == 3
    assert len(store) == 2


def test_memory_store_rewrite_refreshes_position():
    store = MemoryKeyValueStore(max_items=2)
    store.set("a", 1)
    store.set("b", 2)
    store.set("a", 10)
    store.set("c", 3)
    assert store.get("a") == 10
    assert store.get("b") is None


def test_timestamped_store_stamps_entries(clock):
    store = TimestampedCacheStore(MemoryKeyValueStore(), clock)
    store.set("k", "v")
    entry = store.get("k")
    assert entry.value == "v"
    assert entry.timestamp == clock.now_ms()


def test_timestamped_store_freshness(clock):
    store = TimestampedCacheStore(MemoryKeyValueStore(), clock)
    store.set("k", None)
    assert store.has_fresh("k", 60)
    clock.now += 61
    assert not store.has_fresh("k", 60)
    # Stale entries remain readable; callers decide what to do with them
    assert store.get("k") is not None


def test_timestamped_store_ignores_foreign_blobs(clock):
    backing = MemoryKeyValueStore()
    backing.set("k", "not an entry")
    store = TimestampedCacheStore(backing, clock)
    assert store.get("k") is None
    assert not store.has_fresh("k", 60)


def test_store_without_backend_is_noop(clock):
    """Test that a tier with no backing store silently does nothing."""
    store = TimestampedCacheStore(None, clock, name="session")
    store.set("k", "v")
    assert store.get("k") is None
    assert not store.has_fresh("k", 60)
    store.delete("k")
    store.clear()


def test_disk_store_persists_across_instances(tmp_path, clock):
    first = DiskKeyValueStore(tmp_path / "durable")
    TimestampedCacheStore(first, clock).set("identity:farcaster:0xabc", "alice")
    first.close()

    second = DiskKeyValueStore(tmp_path / "durable")
    entry = TimestampedCacheStore(second, clock).get("identity:farcaster:0xabc")
    assert entry.value == "alice"
    assert second.clear() == 1
    assert second.get("identity:farcaster:0xabc") is None
    second.close()
