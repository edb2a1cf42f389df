from __future__ import annotations

from datetime import date
from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone, from_json, parse_stored_datetime, to_json
from .model import MonitoringPlan
from .repository import MonitoringPlanRepository


class MySQLMonitoringPlanRepository(MonitoringPlanRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, worker_id: int, work_date: date) -> Optional[MonitoringPlan]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT plan_id, worker_id, work_date, instants, fired, cancelled, created_at
                FROM monitoring_plans
                WHERE worker_id=%s AND work_date=%s
                """,
                (int(worker_id), work_date),
            )
            r = fetchone(cur)
            if not r:
                return None
            return MonitoringPlan(
                plan_id=str(r["plan_id"]),
                worker_id=int(r["worker_id"]),
                work_date=r["work_date"],
                instants=tuple(parse_stored_datetime(v) for v in from_json(r["instants"], [])),
                created_at=r["created_at"],
                fired=frozenset(parse_stored_datetime(v) for v in from_json(r["fired"], [])),
                cancelled=bool(r["cancelled"]),
            )

    def save(self, plan: MonitoringPlan) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO monitoring_plans(plan_id, worker_id, work_date, instants, fired, cancelled, created_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    plan_id=VALUES(plan_id), instants=VALUES(instants),
                    fired=VALUES(fired), cancelled=VALUES(cancelled), created_at=VALUES(created_at)
                """,
                (
                    plan.plan_id,
                    plan.worker_id,
                    plan.work_date,
                    to_json(list(plan.instants)),
                    to_json(sorted(plan.fired)),
                    1 if plan.cancelled else 0,
                    plan.created_at,
                ),
            )
