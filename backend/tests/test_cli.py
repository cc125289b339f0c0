"""
CLI command tests (flask system / identities / provisions / fines).
"""

from fineledger.models import Identity, ROLE_ADMIN, ROLE_OFFICER
from fineledger.services import fine_service, provision_service


class TestSystemCommands:

    def test_init_creates_admin_once(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "init"])
        second = runner.invoke(args=["system", "init"])

        assert first.exit_code == 0
        assert "PASS Created admin: ADMIN-001" in first.output
        assert "Using existing admin" in second.output
        assert db_session.query(Identity).filter_by(role=ROLE_ADMIN).count() == 1


class TestIdentityCommands:

    def test_create_list_deactivate(self, app, db_session):
        runner = app.test_cli_runner()

        created = runner.invoke(args=[
            "identities", "create",
            "--role", ROLE_OFFICER,
            "--external-id", "BADGE-3001",
            "--name", "Sgt. Cli",
            "--contact", "cli@police.local",
            "--password", "Password123!",
        ])
        assert created.exit_code == 0, created.output
        officer = db_session.query(Identity).filter_by(external_id="BADGE-3001").one()

        listed = runner.invoke(args=["identities", "list", "--role", ROLE_OFFICER])
        assert "BADGE-3001" in listed.output

        deactivated = runner.invoke(args=["identities", "deactivate", str(officer.id)])
        assert deactivated.exit_code == 0
        assert "is inactive" in deactivated.output

    def test_create_duplicate_fails(self, app, db_session, officer):
        result = app.test_cli_runner().invoke(args=[
            "identities", "create",
            "--role", ROLE_OFFICER,
            "--external-id", officer.external_id,
            "--name", "Copy",
            "--contact", "copy@police.local",
            "--password", "Password123!",
        ])
        assert result.exit_code == 1
        assert "FAIL" in result.output


class TestProvisionCommands:

    def test_upsert_uses_first_admin(self, app, db_session, admin):
        result = app.test_cli_runner().invoke(args=[
            "provisions", "upsert", "parking",
            "--description", "Illegal parking",
            "--amount", "1500.50",
        ])

        assert result.exit_code == 0, result.output
        assert "PASS PARKING = 1500.50" in result.output
        assert provision_service.lookup("PARKING").amount_cents == 150_050

    def test_upsert_without_admin_fails(self, app, db_session):
        result = app.test_cli_runner().invoke(args=[
            "provisions", "upsert", "PARKING", "--description", "Illegal parking", "--amount", "1500",
        ])
        assert result.exit_code == 1

    def test_upsert_rejects_infinite_amount(self, app, db_session, admin):
        result = app.test_cli_runner().invoke(args=[
            "provisions", "upsert", "PARKING", "--description", "Illegal parking", "--amount", "Infinity",
        ])
        assert result.exit_code == 1
        assert "FAIL Invalid amount" in result.output

    def test_list_and_deactivate(self, app, db_session, admin, speeding):
        runner = app.test_cli_runner()

        deactivated = runner.invoke(args=["provisions", "deactivate", "SPEEDING", "--admin-id", str(admin.id)])
        assert deactivated.exit_code == 0

        active = runner.invoke(args=["provisions", "list"])
        everything = runner.invoke(args=["provisions", "list", "--all"])
        assert "SPEEDING" not in active.output
        assert "(inactive)" in everything.output


class TestFineCommands:

    def test_show(self, app, db_session, fine_factory):
        fine = fine_factory("PAID")

        result = app.test_cli_runner().invoke(args=["fines", "show", fine.reference_number])

        assert result.exit_code == 0
        assert fine.reference_number in result.output
        assert "fine.issued" in result.output
        assert "fine.paid" in result.output
        assert fine_service.get_payment(fine.reference_number).confirmation_id in result.output

    def test_show_unknown(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["fines", "show", "TF-1999-000001"])
        assert result.exit_code == 1
