from __future__ import annotations

import json

import openpyxl
from sqlalchemy import text
from typer.testing import CliRunner

from dare.cli import app
from dare.db import make_engine
from dare.models import Base

runner = CliRunner()


def _invoke(*args: str):
    return runner.invoke(app, ["--json", *args])


def test_init_db_reports_database(tmp_path) -> None:
    db_url = f"sqlite:///{tmp_path / 'cli.db'}"
    result = _invoke("init-db", "--db-url", db_url)

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["status"] == "ok"
    assert payload["database"].endswith("cli.db")


def test_create_admin_once(tmp_path) -> None:
    db_url = f"sqlite:///{tmp_path / 'admin.db'}"
    args = ["create-admin", "--username", "root", "--password", "changeme", "--db-url", db_url]

    result = _invoke(*args)
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["username"] == "root"
    assert payload["role"] == "admin"

    again = _invoke(*args)
    assert again.exit_code == 1


def test_import_youth_command(tmp_path) -> None:
    db_url = f"sqlite:///{tmp_path / 'import.db'}"
    path = tmp_path / "youth.xlsx"
    wb = openpyxl.Workbook()
    wb.active.append(["Participant Code", "Full Name", "District"])
    wb.active.append(["D002000007", "Afua Tetteh", "Lower Manya Krobo, Ghana"])
    wb.save(path)

    result = _invoke("import-youth", str(path), "--db-url", db_url)

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["total_imported"] == 1
    assert payload["errors"] == []


def test_migrate_on_current_schema(tmp_path) -> None:
    db_url = f"sqlite:///{tmp_path / 'migrate.db'}"
    result = _invoke("migrate", "--db-url", db_url)

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"added_columns": [], "legacy_columns": [], "mentors_migrated": 0}


def test_migrate_reports_folded_mentors(tmp_path) -> None:
    db_url = f"sqlite:///{tmp_path / 'legacy.db'}"
    engine = make_engine(db_url)
    Base.metadata.create_all(engine)
    with engine.begin() as conn:
        conn.execute(text("ALTER TABLE mentors ADD COLUMN assigned_district TEXT"))
        conn.execute(text("ALTER TABLE business_profiles DROP COLUMN youth_plwd_count"))
        conn.execute(text(
            "INSERT INTO users (username, password_hash, full_name, role, is_active) "
            "VALUES ('m1', 'x', 'M One', 'mentor', 1)"
        ))
        conn.execute(text(
            "INSERT INTO mentors (user_id, name, phone, email, specialization, bio, "
            "assigned_districts_json, assigned_district, is_active) "
            "VALUES (1, 'M One', '', '', '', '', '[]', 'Gushegu, Ghana', 1)"
        ))
    engine.dispose()

    result = _invoke("migrate", "--db-url", db_url)

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {
        "added_columns": ["business_profiles.youth_plwd_count"],
        "legacy_columns": ["assigned_district"],
        "mentors_migrated": 1,
    }
    again = _invoke("migrate", "--db-url", db_url)
    assert json.loads(again.stdout)["mentors_migrated"] == 0


def test_export_youth_command(tmp_path) -> None:
    db_url = f"sqlite:///{tmp_path / 'export.db'}"
    source = tmp_path / "youth.xlsx"
    wb = openpyxl.Workbook()
    wb.active.append(["Participant Code", "Full Name", "District"])
    wb.active.append(["D002000007", "Afua Tetteh", "Lower Manya Krobo, Ghana"])
    wb.save(source)
    _invoke("import-youth", str(source), "--db-url", db_url)

    output = tmp_path / "out.xlsx"
    result = _invoke("export", "youth", "--output", str(output), "--db-url", db_url)

    assert result.exit_code == 0
    assert json.loads(result.stdout)["entity"] == "youth"
    rows = list(openpyxl.load_workbook(output).active.iter_rows(values_only=True))
    assert rows[0][:3] == ("ID", "Participant Code", "Full Name")
    assert rows[1][1:3] == ("D002000007", "Afua Tetteh")


def test_export_unknown_entity(tmp_path) -> None:
    db_url = f"sqlite:///{tmp_path / 'export.db'}"
    result = _invoke("export", "mentors", "--output", str(tmp_path / "out.xlsx"), "--db-url", db_url)
    assert result.exit_code == 1
