from __future__ import annotations

from dataclasses import dataclass

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.service import AttendanceService
from .cases.mysql_case_repository import MySQLCaseNumberCounter, MySQLCaseRepository
from .cases.numbering import CaseNumberGenerator
from .cases.service import CaseService
from .core.constants import CASE_NUMBER_PREFIX, HOURS_RETRY_ATTEMPTS
from .database.connection import DBConfig, DatabaseConnection
from .hours.mysql_hours_repository import MySQLHoursLedgerRepository
from .hours.service import HoursLedgerService
from .leaves.mysql_leave_repository import MySQLLeaveRepository
from .leaves.service import LeaveService
from .statistics.service import StatisticsService
from .users.mysql_user_repository import MySQLUserRepository
from .users.service import UserService


@dataclass(frozen=True)
class Container:
    user_service: UserService
    attendance_service: AttendanceService
    hours_service: HoursLedgerService
    leave_service: LeaveService
    case_service: CaseService
    statistics_service: StatisticsService


def build_services(
    *,
    users,
    attendance,
    ledger,
    leaves,
    cases,
    case_counter,
    case_number_prefix: str = CASE_NUMBER_PREFIX,
    hours_retry_attempts: int = HOURS_RETRY_ATTEMPTS,
) -> Container:
    """Wire services over any repositories that satisfy the repository protocols."""
    return Container(
        user_service=UserService(users),
        attendance_service=AttendanceService(attendance, users, retry_attempts=hours_retry_attempts),
        hours_service=HoursLedgerService(ledger, users),
        leave_service=LeaveService(leaves, users),
        case_service=CaseService(
            cases,
            users,
            numbers=CaseNumberGenerator(case_counter, prefix=case_number_prefix),
        ),
        statistics_service=StatisticsService(cases, attendance, leaves, users),
    )


def build_container(
    *,
    db_config: dict,
    case_number_prefix: str = CASE_NUMBER_PREFIX,
    hours_retry_attempts: int = HOURS_RETRY_ATTEMPTS,
) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
    )
    conn = DatabaseConnection.get_instance(config)

    return build_services(
        users=MySQLUserRepository(conn),
        attendance=MySQLAttendanceRepository(conn),
        ledger=MySQLHoursLedgerRepository(conn),
        leaves=MySQLLeaveRepository(conn),
        cases=MySQLCaseRepository(conn),
        case_counter=MySQLCaseNumberCounter(conn),
        case_number_prefix=case_number_prefix,
        hours_retry_attempts=hours_retry_attempts,
    )
