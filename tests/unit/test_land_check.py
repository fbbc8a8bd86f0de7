from __future__ import annotations

import psycopg2

from bulk_reconcile.db.land_check import BoundingBoxLandChecker, PostgresLandChecker


class Cursor:
    def __init__(self, answer=True, fail=False):
        self.answer = answer
        self.fail = fail
        self.executed = []

    def execute(self, sql, params=None):
        self.executed.append(sql)
        if self.fail and sql.startswith("SELECT"):
            raise psycopg2.Error("function check_is_on_land does not exist")

    def fetchone(self):
        return (self.answer,)


def test_bounding_box_checker():
    checker = BoundingBoxLandChecker()
    assert checker.is_on_land(37.5, 127.0) is True
    assert checker.is_on_land(30.0, 127.0) is False


def test_postgres_checker_uses_rpc():
    cur = Cursor(answer=False)
    checker = PostgresLandChecker(cur)
    assert checker.is_on_land(37.5, 127.0) is False
    assert cur.executed == ["SELECT check_is_on_land(%s, %s)"]
    assert checker.calls == 1


def test_postgres_checker_falls_back_on_error():
    cur = Cursor(fail=True)
    checker = PostgresLandChecker(cur)
    assert checker.is_on_land(37.5, 127.0) is True
    assert "ROLLBACK" in cur.executed
