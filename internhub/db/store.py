"""
SQLite entity store.

Pure persistence for students, staff accounts, partnered companies,
applications, agreements, tasks, submissions, reports and weekly updates.
No lifecycle rules live here; the store only offers the primitives the
lifecycle needs to stay race-free:

- natural-key uniqueness enforced by indexes (one active application per
  student, one agreement per student, one submission per task/student,
  one weekly update per student/week, one report per student/author,
  one company per case-insensitive name)
- conditional updates that report whether the row actually moved
  (compare-and-set on a status column)
- upserts keyed on the natural key
- a transaction context that serialises writers

One connection is shared by every caller and guarded by a re-entrant lock;
each write unit runs inside `BEGIN IMMEDIATE ... COMMIT`.
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel

from ..errors import ConflictError
from .models import (
    Admin, Agreement, Application, ApplicationStatus, Company, Report, Student,
    Submission, Task, TaskStatus, WeeklyUpdate, WeeklyUpdateStatus,
    generate_id, utcnow
)

logger = logging.getLogger(__name__)


SCHEMA = [
    '''CREATE TABLE IF NOT EXISTS companies (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL UNIQUE COLLATE NOCASE,
        email TEXT,
        website TEXT,
        address TEXT,
        phone TEXT,
        description TEXT,
        is_partnered INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )''',
    '''CREATE TABLE IF NOT EXISTS students (
        id TEXT PRIMARY KEY,
        roll_number TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        degree TEXT NOT NULL,
        session TEXT NOT NULL,
        password_hash TEXT NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        internship_status TEXT NOT NULL DEFAULT 'none' CHECK (internship_status IN
            ('none', 'submitted', 'approved', 'rejected', 'agreement_submitted', 'verified', 'internship_assigned')),
        internship_category TEXT CHECK (internship_category IS NULL OR internship_category IN
            ('university_assigned', 'self_found', 'freelancer')),
        supervisor_id TEXT,
        assigned_company TEXT,
        assigned_company_id TEXT REFERENCES companies(id),
        assigned_position TEXT,
        site_supervisor_name TEXT,
        site_supervisor_email TEXT,
        site_supervisor_phone TEXT,
        internship_assigned_at TEXT,
        work_mode TEXT,
        internship_field TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )''',
    '''CREATE TABLE IF NOT EXISTS admins (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        role TEXT NOT NULL CHECK (role IN ('admin', 'company_admin', 'super_admin')),
        company TEXT,
        password_hash TEXT NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )''',
    '''CREATE TABLE IF NOT EXISTS applications (
        id TEXT PRIMARY KEY,
        student_id TEXT NOT NULL REFERENCES students(id),
        company_name TEXT NOT NULL,
        position TEXT NOT NULL,
        internship_type TEXT NOT NULL,
        duration TEXT NOT NULL,
        description TEXT,
        internship_category TEXT NOT NULL DEFAULT 'university_assigned',
        work_mode TEXT,
        internship_field TEXT,
        self_found_supervisor TEXT,
        freelancer_accounts TEXT NOT NULL DEFAULT '[]',
        documents TEXT NOT NULL DEFAULT '[]',
        feedback TEXT,
        status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN
            ('pending', 'approved', 'rejected', 'in_progress', 'completed')),
        applied_at TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )''',
    # At most one application per student outside the rejected state
    '''CREATE UNIQUE INDEX IF NOT EXISTS ux_applications_active
        ON applications(student_id) WHERE status != 'rejected' ''',
    '''CREATE INDEX IF NOT EXISTS ix_applications_status ON applications(status)''',
    '''CREATE TABLE IF NOT EXISTS agreements (
        id TEXT PRIMARY KEY,
        student_id TEXT NOT NULL UNIQUE REFERENCES students(id),
        application_id TEXT NOT NULL REFERENCES applications(id),
        sourcing_type TEXT NOT NULL CHECK (sourcing_type IN ('Self', 'University Assigned')),
        phone_number TEXT NOT NULL,
        personal_email TEXT NOT NULL,
        home_address TEXT NOT NULL,
        company_address TEXT,
        supervisor_name TEXT,
        supervisor_designation TEXT,
        supervisor_email TEXT,
        supervisor_phone TEXT,
        status TEXT NOT NULL DEFAULT 'submitted' CHECK (status IN ('submitted', 'verified')),
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )''',
    '''CREATE TABLE IF NOT EXISTS tasks (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        deadline TEXT NOT NULL,
        max_marks REAL NOT NULL DEFAULT 100,
        created_by TEXT NOT NULL,
        company TEXT NOT NULL,
        assigned_to TEXT,
        status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'closed')),
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )''',
    '''CREATE INDEX IF NOT EXISTS ix_tasks_company_status ON tasks(company COLLATE NOCASE, status)''',
    '''CREATE INDEX IF NOT EXISTS ix_tasks_assigned_to ON tasks(assigned_to)''',
    '''CREATE TABLE IF NOT EXISTS submissions (
        id TEXT PRIMARY KEY,
        task_id TEXT NOT NULL REFERENCES tasks(id),
        student_id TEXT NOT NULL REFERENCES students(id),
        content TEXT NOT NULL,
        attachments TEXT NOT NULL DEFAULT '[]',
        submitted_at TEXT NOT NULL,
        company_marks REAL,
        company_feedback TEXT,
        company_graded_at TEXT,
        company_graded_by TEXT,
        faculty_marks REAL,
        faculty_feedback TEXT,
        faculty_graded_at TEXT,
        faculty_graded_by TEXT,
        status TEXT NOT NULL DEFAULT 'submitted' CHECK (status IN
            ('submitted', 'graded_by_company', 'graded_by_faculty', 'fully_graded')),
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE (task_id, student_id)
    )''',
    '''CREATE TABLE IF NOT EXISTS reports (
        id TEXT PRIMARY KEY,
        student_id TEXT NOT NULL REFERENCES students(id),
        created_by TEXT NOT NULL,
        summary TEXT NOT NULL,
        overall_rating REAL NOT NULL CHECK (overall_rating BETWEEN 0 AND 100),
        scores TEXT NOT NULL DEFAULT '{}',
        recommendation TEXT NOT NULL,
        completion_status TEXT NOT NULL DEFAULT 'ongoing',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE (student_id, created_by)
    )''',
    '''CREATE TABLE IF NOT EXISTS weekly_updates (
        id TEXT PRIMARY KEY,
        student_id TEXT NOT NULL REFERENCES students(id),
        week_number INTEGER NOT NULL CHECK (week_number >= 1),
        work_summary TEXT NOT NULL,
        platform_links TEXT NOT NULL DEFAULT '[]',
        hours_worked REAL NOT NULL DEFAULT 0,
        technologies_used TEXT,
        challenges TEXT,
        faculty_remarks TEXT,
        faculty_reviewed_at TEXT,
        faculty_reviewed_by TEXT,
        status TEXT NOT NULL DEFAULT 'submitted' CHECK (status IN ('submitted', 'reviewed')),
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE (student_id, week_number)
    )''',
]

# Columns the lifecycle may write on a student row besides its status
STUDENT_WRITABLE = {
    'name', 'email', 'password_hash', 'is_active', 'internship_category', 'supervisor_id',
    'assigned_company', 'assigned_company_id', 'assigned_position', 'site_supervisor_name',
    'site_supervisor_email', 'site_supervisor_phone', 'internship_assigned_at', 'work_mode', 'internship_field',
}
ADMIN_WRITABLE = {'name', 'email', 'password_hash', 'is_active', 'company'}
TASK_WRITABLE = {'title', 'description', 'deadline', 'max_marks', 'status'}

# Recomputes the composite submission status from the stored grade columns
SUBMISSION_STATUS_SQL = '''CASE
    WHEN company_marks IS NOT NULL AND faculty_marks IS NOT NULL THEN 'fully_graded'
    WHEN company_marks IS NOT NULL THEN 'graded_by_company'
    WHEN faculty_marks IS NOT NULL THEN 'graded_by_faculty'
    ELSE 'submitted' END'''


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _encode(value: Any) -> Any:
    """Convert python values into sqlite-friendly column values"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=_json_default)
    if isinstance(value, bool):
        return int(value)
    return value


def _assignments(fields: Dict[str, Any], allowed: set) -> Tuple[str, List[Any]]:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Columns not writable: {sorted(unknown)}")
    names = sorted(fields)
    return ", ".join(f"{name} = ?" for name in names), [_encode(fields[name]) for name in names]


class InternshipStore:
    """SQLite-backed store with explicit transactions"""

    def __init__(self, database_path: str = ":memory:"):
        self.database_path = database_path
        self._lock = threading.RLock()
        self._depth = 0
        self.conn = sqlite3.connect(database_path, check_same_thread=False, isolation_level=None)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._create_tables()

    def _create_tables(self):
        with self._lock:
            for statement in SCHEMA:
                self.conn.execute(statement)
        logger.info(f"Store ready at {self.database_path}")

    def close(self):
        with self._lock:
            self.conn.close()

    @contextmanager
    def transaction(self):
        """
        Run a unit of work atomically.

        Nested use joins the outer transaction, so a component may call
        other store helpers while already inside a write unit.
        """
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self.conn
                finally:
                    self._depth -= 1
                return

            self.conn.execute("BEGIN IMMEDIATE")
            self._depth = 1
            try:
                yield self.conn
            except BaseException:
                self.conn.execute("ROLLBACK")
                raise
            else:
                self.conn.execute("COMMIT")
            finally:
                self._depth = 0

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        with self._lock:
            return self.conn.execute(sql, [_encode(p) for p in params])

    def _fetchone(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        with self._lock:
            return self._execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self._execute(sql, params).fetchall()

    def _insert(self, table: str, record: Dict[str, Any]):
        columns = list(record)
        placeholders = ", ".join("?" for _ in columns)
        self._execute(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
            [record[c] for c in columns]
        )

    # =================
    # STUDENTS
    # =================

    def insert_student(self, record: Dict[str, Any]) -> Student:
        now = utcnow()
        record = {'id': generate_id("STU"), 'created_at': now, 'updated_at': now, **record}
        try:
            self._insert('students', record)
        except sqlite3.IntegrityError as e:
            raise ConflictError("A student with this email or roll number already exists",
                                {"email": record.get('email'), "roll_number": record.get('roll_number')}) from e
        return self.get_student(record['id'])

    def get_student(self, student_id: str) -> Optional[Student]:
        row = self._fetchone("SELECT * FROM students WHERE id = ?", (student_id,))
        return Student(**dict(row)) if row else None

    def get_student_by_email(self, email: str) -> Optional[Student]:
        row = self._fetchone("SELECT * FROM students WHERE email = ?", (email.lower(),))
        return Student(**dict(row)) if row else None

    def get_student_by_roll_number(self, roll_number: str) -> Optional[Student]:
        row = self._fetchone("SELECT * FROM students WHERE roll_number = ?", (roll_number.upper(),))
        return Student(**dict(row)) if row else None

    def update_student(self, student_id: str, **fields) -> bool:
        assignments, values = _assignments(fields, STUDENT_WRITABLE)
        cursor = self._execute(
            f"UPDATE students SET {assignments}, updated_at = ? WHERE id = ?",
            values + [utcnow(), student_id]
        )
        return cursor.rowcount == 1

    def transition_student(self, student_id: str, from_statuses: Iterable[str], to_status: str, **fields) -> bool:
        """
        Compare-and-set the student's internship status.

        Returns True only if the row was in one of `from_statuses` and has
        been moved to `to_status` together with `fields`.
        """
        sources = [_encode(s) for s in from_statuses]
        if not sources:
            return False
        assignments, values = _assignments(fields, STUDENT_WRITABLE) if fields else ("", [])
        extra = f", {assignments}" if assignments else ""
        placeholders = ", ".join("?" for _ in sources)
        cursor = self._execute(
            f"UPDATE students SET internship_status = ?{extra}, updated_at = ? "
            f"WHERE id = ? AND internship_status IN ({placeholders})",
            [to_status] + values + [utcnow(), student_id] + sources
        )
        return cursor.rowcount == 1

    def list_students(self, supervisor_id: Optional[str] = None, company: Optional[str] = None,
                      internship_status: Optional[str] = None) -> List[Student]:
        clauses, params = [], []
        if supervisor_id is not None:
            clauses.append("supervisor_id = ?")
            params.append(supervisor_id)
        if company is not None:
            clauses.append("assigned_company = ? COLLATE NOCASE")
            params.append(company)
        if internship_status is not None:
            clauses.append("internship_status = ?")
            params.append(internship_status)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._fetchall(f"SELECT * FROM students {where} ORDER BY created_at", params)
        return [Student(**dict(r)) for r in rows]

    def clear_supervisor(self, supervisor_id: str) -> int:
        cursor = self._execute(
            "UPDATE students SET supervisor_id = NULL, updated_at = ? WHERE supervisor_id = ?",
            (utcnow(), supervisor_id)
        )
        return cursor.rowcount

    # =================
    # ADMINS
    # =================

    def insert_admin(self, record: Dict[str, Any]) -> Admin:
        now = utcnow()
        record = {'id': generate_id("ADM"), 'created_at': now, 'updated_at': now, **record}
        try:
            self._insert('admins', record)
        except sqlite3.IntegrityError as e:
            raise ConflictError("An account with this email already exists", {"email": record.get('email')}) from e
        return self.get_admin(record['id'])

    def get_admin(self, admin_id: str) -> Optional[Admin]:
        row = self._fetchone("SELECT * FROM admins WHERE id = ?", (admin_id,))
        return Admin(**dict(row)) if row else None

    def get_admin_by_email(self, email: str) -> Optional[Admin]:
        row = self._fetchone("SELECT * FROM admins WHERE email = ?", (email.lower(),))
        return Admin(**dict(row)) if row else None

    def update_admin(self, admin_id: str, **fields) -> bool:
        assignments, values = _assignments(fields, ADMIN_WRITABLE)
        cursor = self._execute(
            f"UPDATE admins SET {assignments}, updated_at = ? WHERE id = ?",
            values + [utcnow(), admin_id]
        )
        return cursor.rowcount == 1

    def list_admins(self, role: Optional[str] = None) -> List[Admin]:
        if role is None:
            rows = self._fetchall("SELECT * FROM admins ORDER BY created_at")
        else:
            rows = self._fetchall("SELECT * FROM admins WHERE role = ? ORDER BY created_at", (role,))
        return [Admin(**dict(r)) for r in rows]

    # =================
    # COMPANIES
    # =================

    def insert_company(self, record: Dict[str, Any]) -> Company:
        now = utcnow()
        record = {'id': generate_id("CMP"), 'created_at': now, 'updated_at': now, **record}
        try:
            self._insert('companies', record)
        except sqlite3.IntegrityError as e:
            raise ConflictError("Company already exists", {"name": record.get('name')}) from e
        return self.get_company(record['id'])

    def get_company(self, company_id: str) -> Optional[Company]:
        row = self._fetchone("SELECT * FROM companies WHERE id = ?", (company_id,))
        return Company(**dict(row)) if row else None

    def get_company_by_name(self, name: str) -> Optional[Company]:
        # The column is declared NOCASE, so the comparison ignores case
        row = self._fetchone("SELECT * FROM companies WHERE name = ?", (name.strip(),))
        return Company(**dict(row)) if row else None

    def list_companies(self, partnered_only: bool = False) -> List[Company]:
        where = "WHERE is_partnered = 1" if partnered_only else ""
        rows = self._fetchall(f"SELECT * FROM companies {where} ORDER BY name")
        return [Company(**dict(r)) for r in rows]

    def count_students_at_company(self, company_id: str) -> int:
        row = self._fetchone("SELECT COUNT(*) FROM students WHERE assigned_company_id = ?", (company_id,))
        return row[0]

    def delete_company(self, company_id: str) -> bool:
        cursor = self._execute("DELETE FROM companies WHERE id = ?", (company_id,))
        return cursor.rowcount == 1

    # =================
    # APPLICATIONS
    # =================

    def insert_application(self, record: Dict[str, Any]) -> Application:
        now = utcnow()
        record = {
            'id': generate_id("APP"), 'status': ApplicationStatus.PENDING,
            'applied_at': now, 'created_at': now, 'updated_at': now, **record
        }
        try:
            self._insert('applications', record)
        except sqlite3.IntegrityError as e:
            # Lost the race against a concurrent insert for the same student
            raise ConflictError("Student already has an active application",
                                {"student_id": record['student_id']}) from e
        return self.get_application(record['id'])

    def get_application(self, application_id: str) -> Optional[Application]:
        row = self._fetchone("SELECT * FROM applications WHERE id = ?", (application_id,))
        return Application.from_row(row) if row else None

    def active_application(self, student_id: str) -> Optional[Application]:
        row = self._fetchone(
            "SELECT * FROM applications WHERE student_id = ? AND status != 'rejected' "
            "ORDER BY created_at DESC LIMIT 1",
            (student_id,)
        )
        return Application.from_row(row) if row else None

    def latest_application(self, student_id: str, status: Optional[str] = None) -> Optional[Application]:
        if status is None:
            row = self._fetchone(
                "SELECT * FROM applications WHERE student_id = ? ORDER BY created_at DESC, rowid DESC LIMIT 1",
                (student_id,)
            )
        else:
            row = self._fetchone(
                "SELECT * FROM applications WHERE student_id = ? AND status = ? "
                "ORDER BY created_at DESC, rowid DESC LIMIT 1",
                (student_id, status)
            )
        return Application.from_row(row) if row else None

    def list_applications(self, student_id: Optional[str] = None, status: Optional[str] = None) -> List[Application]:
        clauses, params = [], []
        if student_id is not None:
            clauses.append("student_id = ?")
            params.append(student_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(status)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._fetchall(f"SELECT * FROM applications {where} ORDER BY created_at DESC", params)
        return [Application.from_row(r) for r in rows]

    def resubmit_application(self, application_id: str, fields: Dict[str, Any]) -> bool:
        """Overwrite a rejected application in place and put it back to pending."""
        columns = sorted(fields)
        assignments = ", ".join(f"{c} = ?" for c in columns)
        now = utcnow()
        try:
            cursor = self._execute(
                f"UPDATE applications SET {assignments}, status = 'pending', feedback = NULL, "
                f"applied_at = ?, updated_at = ? WHERE id = ? AND status = 'rejected'",
                [fields[c] for c in columns] + [now, now, application_id]
            )
        except sqlite3.IntegrityError as e:
            raise ConflictError("Student already has an active application",
                                {"application_id": application_id}) from e
        return cursor.rowcount == 1

    def set_application_status(self, application_id: str, from_status: str, to_status: str,
                               feedback: Optional[str] = None) -> bool:
        cursor = self._execute(
            "UPDATE applications SET status = ?, feedback = COALESCE(?, feedback), updated_at = ? "
            "WHERE id = ? AND status = ?",
            (to_status, feedback, utcnow(), application_id, from_status)
        )
        return cursor.rowcount == 1

    def bulk_update_applications(self, student_id: str, from_status: str, to_status: str,
                                 feedback: Optional[str] = None) -> int:
        cursor = self._execute(
            "UPDATE applications SET status = ?, feedback = COALESCE(?, feedback), updated_at = ? "
            "WHERE student_id = ? AND status = ?",
            (to_status, feedback, utcnow(), student_id, from_status)
        )
        return cursor.rowcount

    # =================
    # AGREEMENTS
    # =================

    def upsert_agreement(self, record: Dict[str, Any]) -> Optional[Agreement]:
        """
        Insert or overwrite the student's agreement.

        A verified agreement is never overwritten; in that case nothing is
        written and None is returned.
        """
        now = utcnow()
        record = {'id': generate_id("AGR"), 'status': 'submitted', 'created_at': now, 'updated_at': now, **record}
        columns = list(record)
        updatable = [c for c in columns if c not in ('id', 'student_id', 'status', 'created_at')]
        cursor = self._execute(
            f"INSERT INTO agreements ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)}) "
            f"ON CONFLICT(student_id) DO UPDATE SET "
            f"{', '.join(f'{c} = excluded.{c}' for c in updatable)} "
            f"WHERE agreements.status = 'submitted'",
            [record[c] for c in columns]
        )
        if cursor.rowcount != 1:
            return None
        return self.get_agreement_for_student(record['student_id'])

    def get_agreement(self, agreement_id: str) -> Optional[Agreement]:
        row = self._fetchone("SELECT * FROM agreements WHERE id = ?", (agreement_id,))
        return Agreement(**dict(row)) if row else None

    def get_agreement_for_student(self, student_id: str) -> Optional[Agreement]:
        row = self._fetchone("SELECT * FROM agreements WHERE student_id = ?", (student_id,))
        return Agreement(**dict(row)) if row else None

    def list_agreements(self, status: Optional[str] = None) -> List[Agreement]:
        if status is None:
            rows = self._fetchall("SELECT * FROM agreements ORDER BY created_at")
        else:
            rows = self._fetchall("SELECT * FROM agreements WHERE status = ? ORDER BY created_at", (status,))
        return [Agreement(**dict(r)) for r in rows]

    def set_agreement_status(self, agreement_id: str, from_status: str, to_status: str) -> bool:
        cursor = self._execute(
            "UPDATE agreements SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
            (to_status, utcnow(), agreement_id, from_status)
        )
        return cursor.rowcount == 1

    # =================
    # TASKS
    # =================

    def insert_task(self, record: Dict[str, Any]) -> Task:
        now = utcnow()
        record = {'id': generate_id("TSK"), 'status': TaskStatus.ACTIVE, 'created_at': now, 'updated_at': now, **record}
        self._insert('tasks', record)
        return self.get_task(record['id'])

    def get_task(self, task_id: str) -> Optional[Task]:
        row = self._fetchone("SELECT * FROM tasks WHERE id = ?", (task_id,))
        return Task(**dict(row)) if row else None

    def update_task(self, task_id: str, **fields) -> bool:
        assignments, values = _assignments(fields, TASK_WRITABLE)
        cursor = self._execute(
            f"UPDATE tasks SET {assignments}, updated_at = ? WHERE id = ?",
            values + [utcnow(), task_id]
        )
        return cursor.rowcount == 1

    def list_tasks(self, created_by: Optional[str] = None) -> List[Task]:
        if created_by is None:
            rows = self._fetchall("SELECT * FROM tasks ORDER BY created_at DESC")
        else:
            rows = self._fetchall("SELECT * FROM tasks WHERE created_by = ? ORDER BY created_at DESC", (created_by,))
        return [Task(**dict(r)) for r in rows]

    def list_visible_tasks(self, company: str, student_id: str) -> List[Task]:
        rows = self._fetchall(
            "SELECT * FROM tasks WHERE company = ? COLLATE NOCASE AND status = 'active' "
            "AND (assigned_to IS NULL OR assigned_to = ?) ORDER BY deadline",
            (company, student_id)
        )
        return [Task(**dict(r)) for r in rows]

    def close_tasks_by_creator(self, created_by: str) -> int:
        cursor = self._execute(
            "UPDATE tasks SET status = 'closed', updated_at = ? WHERE created_by = ? AND status = 'active'",
            (utcnow(), created_by)
        )
        return cursor.rowcount

    # =================
    # SUBMISSIONS
    # =================

    def upsert_submission(self, task_id: str, student_id: str, content: str, attachments: List[Dict]) -> Submission:
        """
        Create or overwrite the single submission for (task, student).

        Grade columns are untouched on overwrite and the status is
        recomputed from them.
        """
        now = utcnow()
        self._execute(
            "INSERT INTO submissions (id, task_id, student_id, content, attachments, submitted_at, "
            "status, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, 'submitted', ?, ?) "
            "ON CONFLICT(task_id, student_id) DO UPDATE SET content = excluded.content, "
            "attachments = excluded.attachments, submitted_at = excluded.submitted_at, "
            f"updated_at = excluded.updated_at, status = {SUBMISSION_STATUS_SQL}",
            (generate_id("SUB"), task_id, student_id, content, attachments, now, now, now)
        )
        return self.get_submission_for(task_id, student_id)

    def get_submission(self, submission_id: str) -> Optional[Submission]:
        row = self._fetchone("SELECT * FROM submissions WHERE id = ?", (submission_id,))
        return Submission.from_row(row) if row else None

    def get_submission_for(self, task_id: str, student_id: str) -> Optional[Submission]:
        row = self._fetchone(
            "SELECT * FROM submissions WHERE task_id = ? AND student_id = ?", (task_id, student_id)
        )
        return Submission.from_row(row) if row else None

    def count_submissions(self, task_id: str, student_id: str) -> int:
        row = self._fetchone(
            "SELECT COUNT(*) AS n FROM submissions WHERE task_id = ? AND student_id = ?", (task_id, student_id)
        )
        return row["n"]

    def write_company_grade(self, submission_id: str, marks: float, feedback: Optional[str], graded_by: str) -> bool:
        """Write the company grade and recompute status in one statement."""
        cursor = self._execute(
            "UPDATE submissions SET company_marks = ?, company_feedback = ?, company_graded_at = ?, "
            "company_graded_by = ?, status = CASE WHEN faculty_marks IS NOT NULL "
            "THEN 'fully_graded' ELSE 'graded_by_company' END, updated_at = ? WHERE id = ?",
            (marks, feedback, utcnow(), graded_by, utcnow(), submission_id)
        )
        return cursor.rowcount == 1

    def write_faculty_grade(self, submission_id: str, marks: float, feedback: Optional[str], graded_by: str) -> bool:
        """Write the faculty grade and recompute status in one statement."""
        cursor = self._execute(
            "UPDATE submissions SET faculty_marks = ?, faculty_feedback = ?, faculty_graded_at = ?, "
            "faculty_graded_by = ?, status = CASE WHEN company_marks IS NOT NULL "
            "THEN 'fully_graded' ELSE 'graded_by_faculty' END, updated_at = ? WHERE id = ?",
            (marks, feedback, utcnow(), graded_by, utcnow(), submission_id)
        )
        return cursor.rowcount == 1

    def list_submissions(self, task_ids: Optional[Sequence[str]] = None,
                         student_ids: Optional[Sequence[str]] = None) -> List[Submission]:
        clauses, params = [], []
        for column, values in (("task_id", task_ids), ("student_id", student_ids)):
            if values is not None:
                if not values:
                    return []
                clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
                params.extend(values)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._fetchall(f"SELECT * FROM submissions {where} ORDER BY submitted_at DESC", params)
        return [Submission.from_row(r) for r in rows]

    def clear_grader(self, admin_id: str) -> int:
        changed = 0
        for side in ("company", "faculty"):
            cursor = self._execute(
                f"UPDATE submissions SET {side}_graded_by = NULL, updated_at = ? WHERE {side}_graded_by = ?",
                (utcnow(), admin_id)
            )
            changed += cursor.rowcount
        return changed

    # =================
    # REPORTS
    # =================

    def upsert_report(self, student_id: str, created_by: str, summary: str, overall_rating: float,
                      recommendation: str, scores: Optional[Dict] = None,
                      completion_status: Optional[str] = None) -> Report:
        """Insert or update the report keyed on (student, author); unset optional fields keep stored values."""
        now = utcnow()
        self._execute(
            "INSERT INTO reports (id, student_id, created_by, summary, overall_rating, scores, recommendation, "
            "completion_status, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(student_id, created_by) DO UPDATE SET summary = excluded.summary, "
            "overall_rating = excluded.overall_rating, recommendation = excluded.recommendation, "
            "scores = CASE WHEN ? THEN excluded.scores ELSE reports.scores END, "
            "completion_status = CASE WHEN ? THEN excluded.completion_status ELSE reports.completion_status END, "
            "updated_at = excluded.updated_at",
            (generate_id("RPT"), student_id, created_by, summary, overall_rating, scores or {},
             recommendation, completion_status or 'ongoing', now, now,
             scores is not None, completion_status is not None)
        )
        return self.get_report(student_id, created_by)

    def get_report(self, student_id: str, created_by: str) -> Optional[Report]:
        row = self._fetchone(
            "SELECT * FROM reports WHERE student_id = ? AND created_by = ?", (student_id, created_by)
        )
        return Report.from_row(row) if row else None

    def list_reports(self, student_id: Optional[str] = None, created_by: Optional[str] = None) -> List[Report]:
        clauses, params = [], []
        if student_id is not None:
            clauses.append("student_id = ?")
            params.append(student_id)
        if created_by is not None:
            clauses.append("created_by = ?")
            params.append(created_by)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._fetchall(f"SELECT * FROM reports {where} ORDER BY updated_at DESC", params)
        return [Report.from_row(r) for r in rows]

    # =================
    # WEEKLY UPDATES
    # =================

    def upsert_weekly_update(self, student_id: str, week_number: int, fields: Dict[str, Any]) -> WeeklyUpdate:
        """Insert or overwrite the (student, week) update; an overwrite discards any faculty review."""
        now = utcnow()
        record = {
            'id': generate_id("WKU"), 'student_id': student_id, 'week_number': week_number,
            'status': WeeklyUpdateStatus.SUBMITTED, 'created_at': now, 'updated_at': now, **fields
        }
        columns = list(record)
        updatable = [c for c in fields] + ['updated_at']
        self._execute(
            f"INSERT INTO weekly_updates ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)}) "
            f"ON CONFLICT(student_id, week_number) DO UPDATE SET "
            f"{', '.join(f'{c} = excluded.{c}' for c in updatable)}, status = 'submitted', "
            f"faculty_remarks = NULL, faculty_reviewed_at = NULL, faculty_reviewed_by = NULL",
            [record[c] for c in columns]
        )
        return self.get_weekly_update_for(student_id, week_number)

    def get_weekly_update(self, update_id: str) -> Optional[WeeklyUpdate]:
        row = self._fetchone("SELECT * FROM weekly_updates WHERE id = ?", (update_id,))
        return WeeklyUpdate.from_row(row) if row else None

    def get_weekly_update_for(self, student_id: str, week_number: int) -> Optional[WeeklyUpdate]:
        row = self._fetchone(
            "SELECT * FROM weekly_updates WHERE student_id = ? AND week_number = ?", (student_id, week_number)
        )
        return WeeklyUpdate.from_row(row) if row else None

    def list_weekly_updates(self, student_id: str) -> List[WeeklyUpdate]:
        rows = self._fetchall(
            "SELECT * FROM weekly_updates WHERE student_id = ? ORDER BY week_number", (student_id,)
        )
        return [WeeklyUpdate.from_row(r) for r in rows]

    def review_weekly_update(self, update_id: str, remarks: str, reviewed_by: str) -> bool:
        cursor = self._execute(
            "UPDATE weekly_updates SET faculty_remarks = ?, faculty_reviewed_at = ?, faculty_reviewed_by = ?, "
            "status = 'reviewed', updated_at = ? WHERE id = ?",
            (remarks, utcnow(), reviewed_by, utcnow(), update_id)
        )
        return cursor.rowcount == 1

    def clear_reviewer(self, admin_id: str) -> int:
        cursor = self._execute(
            "UPDATE weekly_updates SET faculty_reviewed_by = NULL, updated_at = ? WHERE faculty_reviewed_by = ?",
            (utcnow(), admin_id)
        )
        return cursor.rowcount
