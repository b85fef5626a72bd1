from pathlib import Path
import re


VERSIONS_DIR = Path(__file__).resolve().parents[2] / "alembic" / "versions"
REVISION_RE = re.compile(r'^revision = "([^"]+)"', re.MULTILINE)
DOWN_REVISION_RE = re.compile(r'^down_revision = (?:"([^"]+)"|None)', re.MULTILINE)


def _revisions() -> dict[str, str | None]:
    revisions = {}
    for migration_file in VERSIONS_DIR.glob("*.py"):
        text = migration_file.read_text(encoding="utf-8")
        revision = REVISION_RE.search(text)
        if not revision:
            continue
        down = DOWN_REVISION_RE.search(text)
        revisions[revision.group(1)] = down.group(1) if down else None
    return revisions


def test_alembic_revision_ids_fit_version_table_limit():
    """Postgres alembic_version.version_num is varchar(32)."""
    too_long = [revision for revision in _revisions() if len(revision) > 32]

    assert not too_long, f"Alembic revision IDs must be <= 32 chars. Found: {too_long}"


def test_alembic_history_has_single_head():
    revisions = _revisions()
    assert revisions

    parents = {down for down in revisions.values() if down}
    heads = [revision for revision in revisions if revision not in parents]
    roots = [revision for revision, down in revisions.items() if down is None]

    assert len(heads) == 1
    assert len(roots) == 1
    assert parents <= set(revisions)
