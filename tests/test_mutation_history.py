import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from mutation_history import DEFAULT_HISTORY_CAP, MutationHistory


class TestMutationHistory(unittest.TestCase):
    def test_default_cap(self) -> None:
        self.assertEqual(MutationHistory().cap, DEFAULT_HISTORY_CAP)
        self.assertEqual(DEFAULT_HISTORY_CAP, 50)

    def test_invalid_cap(self) -> None:
        for cap in (0, -1, True, "5"):
            with self.assertRaises(ValueError):
                MutationHistory(cap)

    def test_undo_redo_round_trip(self) -> None:
        history = MutationHistory(5)
        history.record("g0")
        history.record("g1")
        self.assertEqual(history.undo("g2"), "g1")
        self.assertEqual(history.undo("g1"), "g0")
        self.assertFalse(history.can_undo)
        self.assertEqual(history.redo("g0"), "g1")
        self.assertEqual(history.redo("g1"), "g2")
        self.assertFalse(history.can_redo)

    def test_empty_stacks_return_none(self) -> None:
        history = MutationHistory(3)
        self.assertIsNone(history.undo("g"))
        self.assertIsNone(history.redo("g"))
        self.assertEqual(history.depth(), {"past": 0, "future": 0, "cap": 3})

    def test_record_clears_future(self) -> None:
        history = MutationHistory(3)
        history.record("g0")
        history.undo("g1")
        self.assertTrue(history.can_redo)
        history.record("g0")
        self.assertFalse(history.can_redo)

    def test_cap_drops_oldest(self) -> None:
        history = MutationHistory(2)
        for value in ("g0", "g1", "g2"):
            history.record(value)
        self.assertEqual(history.depth()["past"], 2)
        self.assertEqual(history.undo("g3"), "g2")
        self.assertEqual(history.undo("g2"), "g1")
        self.assertIsNone(history.undo("g1"))

    def test_clear(self) -> None:
        history = MutationHistory(2)
        history.record("g0")
        history.undo("g1")
        history.clear()
        self.assertEqual(history.depth(), {"past": 0, "future": 0, "cap": 2})


if __name__ == "__main__":
    unittest.main()
