import pytest

from app.cache.lru import BoundedCache


class TestBoundedCache:
    def test_get_miss_returns_default(self):
        cache = BoundedCache(max_size=2)
        assert cache.get("missing") is None
        assert cache.get("missing", "fallback") == "fallback"
        assert len(cache) == 0

    def test_set_returns_value_and_stores(self):
        cache = BoundedCache(max_size=2)
        assert cache.set("a", 1) == 1
        assert cache.get("a") == 1
        assert "a" in cache

    def test_evicts_least_recently_used(self):
        cache = BoundedCache(max_size=3)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)

        cache.get("a")  # a becomes most recent
        cache.set("d", 4)

        assert not cache.has("b")
        assert cache.keys() == ["c", "a", "d"]

    def test_has_does_not_promote(self):
        cache = BoundedCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.has("a")
        cache.set("c", 3)
        assert not cache.has("a")
        assert cache.has("b") and cache.has("c")

    def test_replacing_key_moves_it_to_end_without_eviction(self):
        cache = BoundedCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)

        assert len(cache) == 2
        assert cache.keys() == ["b", "a"]
        assert cache.get("a") == 10

    def test_retained_keys_are_most_recently_touched(self):
        cache = BoundedCache(max_size=3)
        touched = []
        ops = [("set", "a"), ("set", "b"), ("get", "a"), ("set", "c"),
               ("set", "d"), ("get", "c"), ("set", "e"), ("get", "a")]
        for op, key in ops:
            if op == "set":
                cache.set(key, key.upper())
                touched.append(key)
            elif cache.get(key) is not None:
                touched.append(key)
            assert len(cache) <= 3

        expected = []
        for key in reversed(touched):
            if key not in expected:
                expected.append(key)
        assert set(cache.keys()) == set(expected[:3])

    def test_delete_and_clear(self):
        cache = BoundedCache(max_size=2)
        cache.set("a", 1)
        assert cache.delete("a") is True
        assert cache.delete("a") is False

        cache.set("b", None)
        assert cache.delete("b") is True  # None values still count as present

        cache.set("c", 3)
        cache.clear()
        assert cache.size == 0

    def test_stats(self):
        cache = BoundedCache(max_size=4)
        cache.set("a", 1)
        assert cache.stats() == {"size": 1, "max_size": 4, "utilization_percent": 25}

    def test_utilization_rounds_half_up(self):
        cache = BoundedCache(max_size=8)
        cache.set("a", 1)
        assert cache.stats()["utilization_percent"] == 13

    @pytest.mark.parametrize("size", [0, -1])
    def test_rejects_non_positive_capacity(self, size):
        with pytest.raises(ValueError):
            BoundedCache(max_size=size)
