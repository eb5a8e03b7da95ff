import json

import pytest
from click.testing import CliRunner

from cli import cli
from rapport.models import User


@pytest.fixture
def run(app):
    runner = CliRunner()

    def _run(*args):
        return runner.invoke(cli, list(args), obj={"app": app})

    return _run


def test_add_user_and_duplicate(run):
    result = run("add-user", "--first-name", "Ada", "--last-name", "Lovelace", "--email", "Ada@Example.com",
                 "--password", "Secret#123")
    assert result.exit_code == 0, result.output
    assert User.query.filter_by(email="ada@example.com").one().check_password("Secret#123")

    again = run("add-user", "--first-name", "Ada", "--last-name", "L", "--email", "ada@example.com",
                "--password", "x")
    assert again.exit_code != 0
    assert "already registered" in again.output


def test_set_password(run, trio):
    result = run("set-password", "--email", "bob@example.com", "--password", "Other#999")

    assert result.exit_code == 0, result.output
    assert User.query.filter_by(email="bob@example.com").one().check_password("Other#999")


def test_befriend_accept_and_contacts(run, trio):
    ada, bob, cy = trio

    assert run("befriend", "ada@example.com", "bob@example.com").exit_code == 0
    duplicate = run("befriend", "bob@example.com", "ada@example.com")
    assert duplicate.exit_code != 0
    assert "already exists" in duplicate.output

    assert run("accept", "bob@example.com", "ada@example.com").exit_code == 0

    result = run("contacts", "ada@example.com", "--json")
    assert result.exit_code == 0, result.output
    snapshot = json.loads(result.output)
    assert [c["id"] for c in snapshot["friends"]["friends"]] == [bob.id]
    assert [c["id"] for c in snapshot["friends"]["unrelated"]] == [cy.id]

    text = run("contacts", "bob@example.com")
    assert "Friends: Ada Tester (#1)" in text.output
    assert "Groups: -" in text.output


def test_unknown_user(run):
    result = run("contacts", "ghost@example.com")

    assert result.exit_code != 0
    assert "was not found" in result.output


def test_watch_runs_requested_ticks(run, trio):
    result = run("watch", "ada@example.com", "--ticks", "1")

    assert result.exit_code == 0, result.output
    assert result.output.count("Other users:") == 1
