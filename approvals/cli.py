"""Approvals service CLI tool (approvalsctl)."""

import os

import typer

app = typer.Typer(name="approvalsctl", help="SBCLC Approvals CLI")
db_app = typer.Typer(help="Database management commands")
app.add_typer(db_app, name="db")

API_URL = os.environ.get("APPROVALS_API_URL", "http://localhost:8000/api")


def _auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@db_app.command("create")
def db_create():
    """Create the MySQL database if it doesn't exist."""
    import pymysql
    from sqlalchemy.engine import make_url
    from approvals.core.config import settings

    url = make_url(settings.DATABASE_URL)
    conn = pymysql.connect(
        host=url.host or "localhost",
        port=url.port or 3306,
        user=url.username,
        password=url.password or "",
    )
    try:
        cursor = conn.cursor()
        cursor.execute(
            f"CREATE DATABASE IF NOT EXISTS `{url.database}` "
            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
        typer.echo(f"Database '{url.database}' created (or already exists)")
    finally:
        conn.close()


@db_app.command("init")
def db_init():
    """Create all tables."""
    from approvals.db.base import Base
    from approvals.db.session import engine
    import approvals.models  # noqa: F401  registers every table

    Base.metadata.create_all(bind=engine)
    typer.echo("Tables created")


@db_app.command("seed")
def db_seed(
    sample_rules: bool = typer.Option(True, help="Also seed sample approval rules"),
):
    """Seed default roles, grants and sample approval rules."""
    from approvals.db.session import SessionLocal
    from approvals.db.seeds.seed_roles import seed_roles
    from approvals.db.seeds.seed_matrix import seed_matrix

    db = SessionLocal()
    try:
        seed_roles(db)
        if sample_rules:
            seed_matrix(db)
    finally:
        db.close()
    typer.echo("All seeds applied")


@app.command("history")
def history(
    document_id: int = typer.Argument(..., help="Document ID"),
    token: str = typer.Option(..., envvar="APPROVALS_TOKEN", help="Bearer token"),
):
    """Print a document's approval history."""
    import httpx
    resp = httpx.get(f"{API_URL}/documents/{document_id}/history", headers=_auth_headers(token))
    if resp.status_code != 200:
        typer.echo(resp.json(), err=True)
        raise typer.Exit(code=1)
    for row in resp.json():
        line = f"  {row['action_date']}  {row['action']:<18} {row['action_by_name']}"
        if row.get("comments"):
            line += f"  \"{row['comments']}\""
        typer.echo(line)


@app.command("permissions")
def permissions(
    role_code: str = typer.Argument(..., help="Role code"),
    token: str = typer.Option(..., envvar="APPROVALS_TOKEN", help="Bearer token"),
):
    """Print the permissions granted to a role."""
    import httpx
    resp = httpx.get(f"{API_URL}/roles/{role_code}/permissions", headers=_auth_headers(token))
    if resp.status_code != 200:
        typer.echo(resp.json(), err=True)
        raise typer.Exit(code=1)
    for module_id, actions in resp.json().items():
        typer.echo(f"  {module_id}: {', '.join(actions)}")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload"),
):
    """Start the FastAPI server."""
    import uvicorn
    uvicorn.run("approvals.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
