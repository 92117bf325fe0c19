import sys
import tempfile
import unittest
from pathlib import Path

import pandas as pd

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from task_workflow.data.db import connect, init_db
from task_workflow.data.repositories import TaskRepository
from task_workflow.data.seed import prepare_tasks_frame, seed_tasks_from_csv

CSV_TEXT = """id,business_name,task_type,status,created_at,assignees,start_date
t1,Acme,self,self_contract,2024-01-01T00:00:00Z,Kim|Lee,2024-01-02
t2,Acme,self,self_contract,2024-02-01T00:00:00Z,,
"""


class SeedTests(unittest.TestCase):
    def test_prepare_requires_columns(self) -> None:
        with self.assertRaises(ValueError):
            prepare_tasks_frame(pd.DataFrame([{"id": "t1", "status": "x"}]))

    def test_prepare_defaults_task_type(self) -> None:
        frame = prepare_tasks_frame(
            pd.DataFrame([{"id": "t1", "business_name": "A", "status": "etc_status", "created_at": "2024-01-01"}])
        )
        self.assertEqual(frame.loc[0, "task_type"], "etc")

    def test_seed_from_csv(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            csv_path = Path(tmp) / "tasks.csv"
            csv_path.write_text(CSV_TEXT, encoding="utf-8")
            con = connect(Path(tmp) / "app.db")
            try:
                init_db(con)
                self.assertEqual(seed_tasks_from_csv(con, csv_path), 2)
                repo = TaskRepository(con)
                first = repo.get_task("t1")
                self.assertEqual([a["name"] for a in first["assignees"]], ["Kim", "Lee"])
                self.assertEqual(first["start_date"], "2024-01-02")
                self.assertIsNone(repo.get_task("t2")["start_date"])
                self.assertEqual(seed_tasks_from_csv(con, Path(tmp) / "missing.csv"), 0)
            finally:
                con.close()


if __name__ == "__main__":
    unittest.main()
