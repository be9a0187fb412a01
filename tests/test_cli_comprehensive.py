"""
Comprehensive CLI integration tests

Tests all CLI commands for participants, objects, distributions, settings,
statistics and backups. Uses Typer's CliRunner for isolated command testing
without spawning a process.

Fun fact: The first command-line interface (CLI) was created in 1964 for the Dartmouth Time Sharing System.
It revolutionized computing by allowing users to interact with computers through text commands!
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from partshare.cli.main import app


@pytest.fixture
def runner():
    """Typer CLI test runner"""
    return CliRunner()


@pytest.fixture
def db(runner, tmp_path) -> Path:
    """Initialized database"""
    db_path = tmp_path / "cli.db"
    result = runner.invoke(app, ["init", "--db", str(db_path)])
    assert result.exit_code == 0
    return db_path


def invoke(runner, db, *args):
    return runner.invoke(app, [*args, "--db", str(db)])


@pytest.fixture
def people(runner, db) -> list[int]:
    for first in ("Alice", "Bob", "Chloe"):
        result = invoke(runner, db, "participant", "add", "--first-name", first, "--last-name", "Cli")
        assert result.exit_code == 0
    listing = json.loads(invoke(runner, db, "participant", "list", "--json").stdout)
    return [p["participant_id"] for p in listing]


@pytest.fixture
def full_bike(runner, db) -> int:
    """Type id of a kit with 2 wheels and 1 frame"""
    result = invoke(
        runner, db, "object", "add",
        "--name", "Bike",
        "--parts", '["wheel", "frame"]',
        "--types", '{"Full bike": {"wheel": 2, "frame": 1}}',
    )
    assert result.exit_code == 0
    [obj] = json.loads(invoke(runner, db, "object", "list", "--json").stdout)
    return obj["types"][0]["type_id"]


def create(runner, db, people, full_bike, count=1, *extra):
    selections = json.dumps([{"type_id": full_bike, "count": count}])
    return invoke(
        runner, db, "distribution", "create",
        "--name", "Spring",
        "--participants", ",".join(str(p) for p in people),
        "--selections", selections,
        *extra,
    )


# =============================================================================
# Initialization Tests
# =============================================================================


def test_init_creates_database(runner, tmp_path):
    """Test init command creates database"""
    db_path = tmp_path / "test.db"

    result = runner.invoke(app, ["init", "--db", str(db_path)])

    assert result.exit_code == 0
    assert db_path.exists()
    assert "initialized" in result.stdout.lower()


def test_init_with_existing_database(runner, db):
    """Test init refuses to overwrite a database"""
    result = runner.invoke(app, ["init", "--db", str(db)])

    assert result.exit_code == 1


def test_missing_database(runner, tmp_path):
    """Test commands point at init when the database is missing"""
    result = runner.invoke(app, ["participant", "list", "--db", str(tmp_path / "none.db")])

    assert result.exit_code == 1
    assert "partshare init" in result.output


# =============================================================================
# Participant Command Tests
# =============================================================================


def test_participant_add_and_list(runner, db):
    """Test adding a participant with contact details"""
    result = invoke(
        runner, db, "participant", "add",
        "--first-name", "Alice", "--last-name", "Martin", "--email", "alice@example.org",
    )

    assert result.exit_code == 0
    assert "Added participant" in result.stdout

    listing = invoke(runner, db, "participant", "list")
    assert "Alice Martin" in listing.stdout
    assert "alice@example.org" in listing.stdout


def test_participant_add_rejects_blank_name(runner, db):
    """Test validation errors exit with code 1"""
    result = invoke(runner, db, "participant", "add", "--first-name", " ", "--last-name", "X")

    assert result.exit_code == 1


def test_participant_edit(runner, db, people):
    """Test editing replaces the participant's details"""
    result = invoke(
        runner, db, "participant", "edit",
        "--id", str(people[0]), "--first-name", "Alicia", "--last-name", "Cli",
    )

    assert result.exit_code == 0
    assert "Alicia Cli" in result.stdout


def test_participant_remove_unknown(runner, db):
    """Test removing a missing participant fails"""
    result = invoke(runner, db, "participant", "remove", "--id", "999")

    assert result.exit_code == 1


def test_participant_list_empty(runner, db):
    """Test listing with no participants"""
    result = invoke(runner, db, "participant", "list")

    assert result.exit_code == 0
    assert "No participants" in result.stdout


# =============================================================================
# Object Command Tests
# =============================================================================


def test_object_add_shows_types(runner, db):
    """Test object add reports parts per type"""
    result = invoke(
        runner, db, "object", "add",
        "--name", "Bike",
        "--parts", '["wheel", "frame"]',
        "--types", '{"Full bike": {"wheel": 2, "frame": 1}}',
    )

    assert result.exit_code == 0
    assert "Full bike" in result.stdout
    assert "wheel x2" in result.stdout


def test_object_add_invalid_json(runner, db):
    """Test malformed JSON options are rejected"""
    result = invoke(runner, db, "object", "add", "--name", "Bike", "--parts", "[wheel")

    assert result.exit_code == 1
    assert "not valid JSON" in result.output


def test_object_remove(runner, db, full_bike):
    """Test removing an object"""
    [obj] = json.loads(invoke(runner, db, "object", "list", "--json").stdout)

    result = invoke(runner, db, "object", "remove", "--id", str(obj["object_id"]))

    assert result.exit_code == 0
    assert "No objects" in invoke(runner, db, "object", "list").stdout


# =============================================================================
# Distribution Command Tests
# =============================================================================


def test_distribution_create(runner, db, people, full_bike):
    """Test creating a distribution with the default policy"""
    result = create(runner, db, people, full_bike, 2)

    assert result.exit_code == 0
    assert "Created distribution" in result.stdout
    assert "Units: 6" in result.stdout


def test_distribution_create_json(runner, db, people, full_bike):
    """Test JSON output of a created distribution"""
    result = create(runner, db, people, full_bike, 1, "--policy", "less", "--json")

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["name"] == "Spring"
    assert sum(a["quantity"] for a in data["assignments"]) == 3


def test_distribution_create_seeded_random(runner, db, people, full_bike):
    """Test random policy with a seed"""
    result = create(runner, db, people, full_bike, 3, "--policy", "random", "--seed", "abc")

    assert result.exit_code == 0
    assert "Units: 9" in result.stdout


def test_distribution_create_unknown_type(runner, db, people):
    """Test unknown kit types are reported"""
    result = invoke(
        runner, db, "distribution", "create",
        "--name", "Bad",
        "--participants", ",".join(str(p) for p in people),
        "--selections", '[{"type_id": 4242, "count": 1}]',
    )

    assert result.exit_code == 1
    assert "Error" in result.output


def test_distribution_create_negative_count(runner, db, people, full_bike):
    """Test a negative share round count is rejected"""
    result = create(runner, db, people, full_bike, 1, "--policy", "share_less", "--count", "-1")

    assert result.exit_code == 1


def test_distribution_create_bad_participants(runner, db, full_bike):
    """Test participant ids must be integers"""
    result = create(runner, db, ["a", "b"], full_bike)

    assert result.exit_code == 1
    assert "comma separated ids" in result.output


def test_distribution_list_show_cancel(runner, db, people, full_bike):
    """Test the distribution lifecycle through the CLI"""
    created = json.loads(create(runner, db, people, full_bike, 1, "--json").stdout)
    distribution_id = str(created["distribution_id"])

    listing = invoke(runner, db, "distribution", "list")
    assert "Spring" in listing.stdout

    shown = invoke(runner, db, "distribution", "show", "--id", distribution_id)
    assert shown.exit_code == 0
    assert "Assignments" in shown.stdout

    cancelled = invoke(runner, db, "distribution", "cancel", "--id", distribution_id)
    assert cancelled.exit_code == 0
    assert invoke(runner, db, "distribution", "show", "--id", distribution_id).exit_code == 1
    assert "No distributions" in invoke(runner, db, "distribution", "list").stdout


# =============================================================================
# Settings and Statistics Tests
# =============================================================================


def test_settings_show_defaults(runner, db):
    """Test default settings"""
    result = invoke(runner, db, "settings", "show", "--json")

    assert result.exit_code == 0
    assert json.loads(result.stdout)["algorithm_type"] == "share_less"


def test_settings_set(runner, db):
    """Test changing the default policy"""
    result = invoke(runner, db, "settings", "set", "--algorithm", "random", "--count", "2")

    assert result.exit_code == 0
    settings = json.loads(invoke(runner, db, "settings", "show", "--json").stdout)
    assert settings["algorithm_type"] == "random"
    assert settings["algorithm_count"] == 2


def test_settings_set_nothing(runner, db):
    """Test set without options fails"""
    assert invoke(runner, db, "settings", "set").exit_code == 1


def test_stats(runner, db, people, full_bike):
    """Test statistics after one distribution"""
    create(runner, db, people, full_bike, 2)

    result = invoke(runner, db, "stats", "--json")

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["total_units"] == 6
    assert data["equity_index"] == 100.0

    text = invoke(runner, db, "stats")
    assert "Equity index" in text.stdout
    assert "Bike" in text.stdout


# =============================================================================
# Backup Tests
# =============================================================================


def test_export_import(runner, db, people, full_bike, tmp_path):
    """Test a backup restores into a fresh database"""
    create(runner, db, people, full_bike, 1)
    backup = tmp_path / "backup.json"

    exported = invoke(runner, db, "db", "export", "--output", str(backup))
    assert exported.exit_code == 0
    assert backup.exists()

    fresh = tmp_path / "fresh.db"
    runner.invoke(app, ["init", "--db", str(fresh)])
    imported = invoke(runner, fresh, "db", "import", "--input", str(backup))

    assert imported.exit_code == 0
    assert "Spring" in invoke(runner, fresh, "distribution", "list").stdout


def test_import_missing_file(runner, db, tmp_path):
    """Test importing a missing file fails"""
    result = invoke(runner, db, "db", "import", "--input", str(tmp_path / "missing.json"))

    assert result.exit_code == 1


# =============================================================================
# Precondition and Policy Option Tests
# =============================================================================


def test_distribution_create_unknown_participant(runner, db, people, full_bike):
    """Test unknown participant ids are reported by id"""
    result = create(runner, db, people + [999], full_bike)

    assert result.exit_code == 1
    assert "Participant 999 not found" in result.output
    assert "No distributions" in invoke(runner, db, "distribution", "list").stdout


def test_distribution_create_count_overrides_settings(runner, db, people, full_bike):
    """Test --count without --policy keeps the settings policy but changes the rounds"""
    alice = people[0]
    create(runner, db, [alice], full_bike, 1)  # Alice starts with 3 units
    invoke(runner, db, "settings", "set", "--count", "1")

    capped = json.loads(create(runner, db, people, full_bike, 2, "--json").stdout)
    overridden = json.loads(create(runner, db, people, full_bike, 2, "--count", "0", "--json").stdout)

    def units_of(distribution, pid):
        return sum(a["quantity"] for a in distribution["assignments"] if a["participant_id"] == pid)

    # One shared round, then less skips Alice for the 3 leftovers
    assert units_of(capped, alice) == 1
    # As many rounds as possible: 2 each
    assert [units_of(overridden, pid) for pid in people] == [2, 2, 2]


def test_distribution_create_negative_count_without_policy(runner, db, people, full_bike):
    """Test --count is validated even when the policy comes from settings"""
    result = create(runner, db, people, full_bike, 1, "--count", "-1")

    assert result.exit_code == 1
    assert "No distributions" in invoke(runner, db, "distribution", "list").stdout
