import threading
import time
import unittest
from unittest.mock import patch

from core.leaderboard import LeaderboardEntry
from core.match_config import normalize_config
from core.state import GameState
from core.store import (
    MemoryStateStore,
    RedisStateStore,
    StateLockTimeout,
    build_state_store,
)


class FakeRedis:
    """Cliente minimo com a semantica de get/set(nx, ex)/delete usada pelo store."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.expirations: dict[str, int] = {}

    def ping(self):
        return True

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self.data:
            return None
        self.data[key] = value
        if ex is not None:
            self.expirations[key] = ex
        return True

    def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0


def _played_state() -> GameState:
    return GameState(
        cfg=normalize_config(count=4, min_num=1, max_num=8, rate=20),
        tries=12,
        elapsed_ms=3400,
        start_ms=77,
        running=True,
        last_draw=[1, 8, 8, 2],
        leaderboard=[LeaderboardEntry(2, 8, [1, 8, 8, 2])],
    )


class MemoryStateStoreTest(unittest.TestCase):
    """Valida isolamento, copia defensiva, limpeza e exclusao mutua por sessao."""

    def test_unknown_session_returns_default_state(self):
        store = MemoryStateStore()
        self.assertEqual(store.load("abc12345"), GameState())

    def test_load_returns_independent_copy(self):
        store = MemoryStateStore()
        store.save("s1", _played_state())
        loaded = store.load("s1")
        loaded.tries = 999
        loaded.leaderboard.clear()
        again = store.load("s1")
        self.assertEqual(again.tries, 12)
        self.assertEqual(len(again.leaderboard), 1)

    def test_sessions_are_isolated(self):
        store = MemoryStateStore()
        store.save("s1", _played_state())
        self.assertEqual(store.load("s2").tries, 0)

    def test_clear(self):
        store = MemoryStateStore()
        store.save("s1", _played_state())
        self.assertTrue(store.clear("s1"))
        self.assertFalse(store.clear("s1"))
        self.assertEqual(store.load("s1"), GameState())

    def test_evicts_oldest_sessions(self):
        store = MemoryStateStore(max_sessions=2)
        for key in ("k1", "k2", "k3"):
            store.save(key, _played_state())
        self.assertEqual(store.snapshot_metrics()["sessions"], 2)
        self.assertEqual(store.load("k3").tries, 12)

    def test_lock_times_out_when_session_busy(self):
        store = MemoryStateStore(lock_timeout_seconds=0.05)
        with store.locked("s1"):
            with self.assertRaises(StateLockTimeout):
                with store.locked("s1"):
                    pass
            with store.locked("s2"):
                pass

    def test_lock_serializes_read_modify_write(self):
        store = MemoryStateStore()

        def worker():
            for _ in range(200):
                with store.locked("shared"):
                    state = store.load("shared")
                    state.tries += 1
                    store.save("shared", state)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(store.load("shared").tries, 800)

    def test_eviction_keeps_lock_held_by_running_command(self):
        store = MemoryStateStore(max_sessions=1, lock_timeout_seconds=0.05)
        with store.locked("aaaaaaaa"):
            held = store._session_locks["aaaaaaaa"]
            store.save("aaaaaaaa", _played_state())
            store.save("bbbbbbbb", _played_state())
            self.assertEqual(store.load("aaaaaaaa"), GameState())
            self.assertIs(store._session_locks["aaaaaaaa"], held)
            with self.assertRaises(StateLockTimeout):
                with store.locked("aaaaaaaa"):
                    pass

    def test_eviction_keeps_lock_for_waiting_command(self):
        store = MemoryStateStore(max_sessions=1, lock_timeout_seconds=5.0)
        inside = threading.Event()
        release = threading.Event()
        active = []
        overlaps = []

        def holder():
            with store.locked("aaaaaaaa"):
                active.append("holder")
                inside.set()
                release.wait(5.0)
                active.remove("holder")

        def waiter():
            with store.locked("aaaaaaaa"):
                if active:
                    overlaps.append(list(active))

        first = threading.Thread(target=holder)
        first.start()
        self.assertTrue(inside.wait(5.0))
        second = threading.Thread(target=waiter)
        second.start()
        while store._lock_users.get("aaaaaaaa", 0) < 2:
            time.sleep(0.001)

        store.save("aaaaaaaa", _played_state())
        store.save("bbbbbbbb", _played_state())
        self.assertIn("aaaaaaaa", store._session_locks)

        release.set()
        first.join(5.0)
        second.join(5.0)
        self.assertEqual(overlaps, [])
        self.assertNotIn("aaaaaaaa", store._session_locks)

    def test_clear_under_lock_releases_lock_entry(self):
        store = MemoryStateStore()
        for index in range(100):
            session_id = f"sess{index:04d}"
            with store.locked(session_id):
                store.save(session_id, _played_state())
                store.clear(session_id)
        self.assertEqual(store._session_locks, {})
        self.assertEqual(store._lock_users, {})

    def test_lock_entry_kept_while_state_stored(self):
        store = MemoryStateStore()
        with store.locked("s1"):
            store.save("s1", _played_state())
        self.assertIn("s1", store._session_locks)
        self.assertEqual(store._lock_users, {})
        store.clear("s1")
        self.assertEqual(store._session_locks, {})

    def test_load_drops_expired_state(self):
        store = MemoryStateStore(ttl_seconds=60)
        with patch("core.store.time.time", return_value=1000.0):
            store.save("s1", _played_state())
        with patch("core.store.time.time", return_value=1059.0):
            self.assertEqual(store.load("s1").tries, 12)
        with patch("core.store.time.time", return_value=1200.0):
            self.assertEqual(store.load("s1"), GameState())
            self.assertEqual(store.snapshot_metrics()["sessions"], 0)


class RedisStateStoreTest(unittest.TestCase):
    """Cobre persistencia JSON com TTL e lock por token no backend Redis."""

    def setUp(self):
        self.client = FakeRedis()
        self.store = RedisStateStore(
            prefix="rm_test",
            ttl_seconds=600,
            lock_timeout_seconds=0.05,
            client=self.client,
        )

    def test_save_and_load(self):
        self.store.save("s1", _played_state())
        self.assertIn("rm_test:state:s1", self.client.data)
        self.assertEqual(self.client.expirations["rm_test:state:s1"], 600)
        self.assertEqual(self.store.load("s1"), _played_state())

    def test_corrupted_payload_falls_back_to_default(self):
        self.client.data["rm_test:state:s1"] = "{not json"
        self.assertEqual(self.store.load("s1"), GameState())

    def test_clear(self):
        self.store.save("s1", _played_state())
        self.assertTrue(self.store.clear("s1"))
        self.assertFalse(self.store.clear("s1"))

    def test_lock_released_after_use(self):
        with self.store.locked("s1"):
            self.assertIn("rm_test:lock:s1", self.client.data)
            with self.assertRaises(StateLockTimeout):
                with self.store.locked("s1"):
                    pass
        self.assertNotIn("rm_test:lock:s1", self.client.data)

    def test_lock_owned_by_other_token_is_kept(self):
        with self.store.locked("s1"):
            self.client.data["rm_test:lock:s1"] = "someone-else"
        self.assertEqual(self.client.data["rm_test:lock:s1"], "someone-else")

    def test_healthcheck(self):
        self.assertEqual(self.store.healthcheck(), (True, "redis_ok"))


class BuildStateStoreTest(unittest.TestCase):
    def test_memory_by_default(self):
        store = build_state_store(backend="memory", redis_url=None)
        self.assertIsInstance(store, MemoryStateStore)

    def test_redis_without_url_falls_back_to_memory(self):
        store = build_state_store(backend="redis", redis_url=None)
        self.assertIsInstance(store, MemoryStateStore)

    def test_strict_mode_requires_redis(self):
        with self.assertRaises(RuntimeError):
            build_state_store(backend="redis", redis_url=None, strict_redis=True)
        with self.assertRaises(RuntimeError):
            build_state_store(backend="memory", redis_url=None, strict_redis=True)


if __name__ == "__main__":
    unittest.main()
