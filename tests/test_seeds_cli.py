"""Seed data and the approvalsctl commands."""
from typer.testing import CliRunner

from approvals.cli import app
from approvals.db.seeds.seed_matrix import SAMPLE_RULES, seed_matrix
from approvals.db.seeds.seed_roles import ROLES, seed_roles
from approvals.models import ApprovalMatrixRule, Role, RolePermission
from approvals.services.permission_service import permission_service

runner = CliRunner()


class TestSeeds:

    def test_seed_roles_is_idempotent(self, db_session):
        seed_roles(db_session)
        grants = db_session.query(RolePermission).count()
        seed_roles(db_session)

        assert db_session.query(Role).count() == len(ROLES)
        assert db_session.query(RolePermission).count() == grants

    def test_seeded_grants_fit_the_catalog(self, db_session):
        seed_roles(db_session)
        pairs = [(g.module_id, g.action) for g in db_session.query(RolePermission)]
        permission_service.validate_against_catalog(pairs)

    def test_seed_matrix_skips_configured_matrix(self, db_session):
        seed_matrix(db_session)
        seed_matrix(db_session)
        assert db_session.query(ApprovalMatrixRule).count() == len(SAMPLE_RULES)


class TestCli:

    def test_db_seed(self, monkeypatch, session_factory):
        monkeypatch.setattr("approvals.db.session.SessionLocal", session_factory)

        result = runner.invoke(app, ["db", "seed", "--no-sample-rules"])

        assert result.exit_code == 0, result.output
        assert "All seeds applied" in result.output
        check = session_factory()
        try:
            assert check.query(Role).count() == len(ROLES)
            assert check.query(ApprovalMatrixRule).count() == 0
        finally:
            check.close()

    def test_permissions_command_needs_token(self, monkeypatch):
        monkeypatch.delenv("APPROVALS_TOKEN", raising=False)
        result = runner.invoke(app, ["permissions", "viewer"])
        assert result.exit_code != 0
