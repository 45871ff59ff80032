import pytest

from update_stats.analyser import DEFAULT_METRICS
from update_stats.store import StatsDatabase


def log_line(
    timestamp: str,
    slug: str = "demo-plugin",
    site: str | None = "http://a.example",
    installed: str = "1.0",
    cms_version: str = "5.8",
    query: str = "php=7.4.3&locale=en_US",
    action: str = "check_updates",
) -> str:
    """One request line in the update server's log format."""
    columns = ["GET", action, slug, installed, cms_version]
    if site is not None:
        columns += [site, query]
    return f"[{timestamp} +0000] 10.0.0.1\t" + "\t".join(columns) + "\n"


@pytest.fixture
def make_line():
    return log_line


@pytest.fixture
def write_log(tmp_path):
    def _write(name: str, lines: list[str]) -> str:
        path = tmp_path / name
        path.write_text("".join(lines), encoding="utf-8")
        return str(path)
    return _write


@pytest.fixture
def database():
    db = StatsDatabase(":memory:", DEFAULT_METRICS)
    yield db
    db.close()


@pytest.fixture
def fetch_stats():
    """All stats rows as sorted (date, slug, metric, value, requests, unique_sites) tuples."""
    def _fetch(db: StatsDatabase) -> list[tuple]:
        rows = db.connection.execute(
            """
            SELECT datestamp, slug, metric, value, requests, unique_sites
            FROM stats
            JOIN slugs USING (slug_id)
            JOIN metrics USING (metric_id)
            """
        ).fetchall()
        return sorted(rows, key=lambda r: tuple("" if v is None else str(v) for v in r))
    return _fetch


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("CONFIG_PATH", "STATS_DB", "MAX_BAD_LINES", "SHOW_PROGRESS", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
