import sqlite3
import sys
import tempfile
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from core.errors import OracleUnavailableError
from services.verification import SQLiteVerificationOracle


class VerificationOracleTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.db_path = Path(self._tmp.name) / "verifications.sqlite"
        conn = sqlite3.connect(self.db_path)
        with conn:
            conn.execute(
                """
                CREATE TABLE verifications (
                    t_id INTEGER PRIMARY KEY,
                    t_date INTEGER,
                    t_username TEXT,
                    w_username TEXT,
                    w_id INTEGER
                )
                """
            )
            conn.executemany(
                "INSERT INTO verifications VALUES (?, ?, ?, ?, ?)",
                [
                    (42, 1714550400, "ann", "Ann (WMXX)", 777),
                    (43, 1714550400, "bob", None, None),
                ],
            )
        conn.close()
        self.oracle = SQLiteVerificationOracle(self.db_path)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_verified_record(self) -> None:
        record = self.oracle.lookup(42)
        self.assertEqual(record.wiki_username, "Ann (WMXX)")
        self.assertEqual(record.wiki_id, 777)
        self.assertEqual(record.telegram_username, "ann")
        self.assertEqual(record.verified_at.year, 2024)
        self.assertTrue(self.oracle.is_verified(42))

    def test_record_without_wiki_id_is_not_verified(self) -> None:
        self.assertIsNotNone(self.oracle.lookup(43))
        self.assertFalse(self.oracle.is_verified(43))

    def test_unknown_user(self) -> None:
        self.assertIsNone(self.oracle.lookup(99))
        self.assertFalse(self.oracle.is_verified(99))

    def test_missing_database_is_an_outage(self) -> None:
        oracle = SQLiteVerificationOracle(Path(self._tmp.name) / "absent.sqlite")
        with self.assertRaises(OracleUnavailableError):
            oracle.is_verified(42)
        self.assertFalse((Path(self._tmp.name) / "absent.sqlite").exists())

    def test_missing_table_is_an_outage(self) -> None:
        empty = Path(self._tmp.name) / "empty.sqlite"
        sqlite3.connect(empty).close()
        with self.assertRaises(OracleUnavailableError):
            SQLiteVerificationOracle(empty).lookup(42)


if __name__ == "__main__":
    unittest.main()
