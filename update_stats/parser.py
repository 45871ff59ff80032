"""Parser for update server request log lines.

Line format (tab separated after the IP)::

    [2024-01-01 12:00:00 +0000] 1.2.3.4<TAB>GET<TAB>check_updates<TAB>slug<TAB>...

Positional columns: http_method, action, slug, installed_version,
cms_version, site_url, query_string. Trailing columns may be missing.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from urllib.parse import parse_qsl, urlsplit

from update_stats.errors import ParseError
from update_stats.versions import OBFUSCATED, aggregate_version, looks_like_normal_version

LINE_PATTERN = re.compile(r"^\[(?P<timestamp>[^\]]+)\]\s(?P<ip>\S+)\s+(?P<remainder>.+)$")

COLUMNS = (
    "http_method", "action", "slug", "installed_version", "cms_version",
    "site_url", "query_string",
)

TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%d/%b/%Y:%H:%M:%S %z",
    "%Y-%m-%d %H:%M:%S",
)

MISSING = "-"


class Cms(str, Enum):
    WORDPRESS = "WP"
    CLASSICPRESS = "CP"


@dataclass(frozen=True)
class RequestRecord:
    timestamp: int
    ip: str
    slug: str
    http_method: str | None
    action: str | None
    installed_version: str | None
    cms: Cms
    cms_version: str | None
    cms_version_aggregate: str
    php_version: str | None
    php_version_aggregate: str | None
    locale: str | None
    site_url: str | None

    def metric_value(self, metric: str) -> str | None:
        """Value of a metric column, with enums flattened to their string."""
        value = getattr(self, metric)
        if isinstance(value, Cms):
            return value.value
        return value


def parse_timestamp(text: str) -> int | None:
    """Convert a log timestamp to unix seconds. Naive times are UTC."""
    text = text.strip()
    for fmt in TIMESTAMP_FORMATS:
        try:
            dt = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(dt.timestamp())
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def _classicpress_params(site_url: str | None) -> dict | None:
    """Site URL query of a ClassicPress site that reports its real version.

    None unless the query carries a truthy ``wp_compatible`` flag.
    """
    if not site_url:
        return None
    query = urlsplit(site_url).query
    if not query:
        return None
    params = dict(parse_qsl(query, keep_blank_values=True))
    if params.get("wp_compatible") in (None, "", "0"):
        return None
    return params


def _normalize_cms_version(version: str | None) -> str | None:
    # Obfuscated or bogus versions are grouped under one sentinel.
    if version is None:
        return None
    if version == "":
        return MISSING
    if version != MISSING and not looks_like_normal_version(version):
        return OBFUSCATED
    return version


def parse_line(line: str, line_number: int = 0) -> RequestRecord:
    """Parse one log line into a RequestRecord.

    Raises ParseError for lines that don't have the expected shape.
    """
    match = LINE_PATTERN.match(line.rstrip("\r\n"))
    if not match:
        raise ParseError(line_number)

    timestamp = parse_timestamp(match.group("timestamp"))
    if timestamp is None:
        raise ParseError(line_number, f"bad timestamp {match.group('timestamp')!r}")

    fields = dict.fromkeys(COLUMNS)
    for name, value in zip(COLUMNS, match.group("remainder").split("\t")):
        fields[name] = value

    # Hand-edited download links sometimes drop the slug.
    slug = fields["slug"] if fields["slug"] is not None else MISSING

    cms = Cms.WORDPRESS
    cms_version = fields["cms_version"]
    php_version = None
    locale = None

    if fields["query_string"]:
        params = dict(parse_qsl(fields["query_string"], keep_blank_values=True))
        if "ClassicPress" in params.get("cms", "").replace("=", ""):
            cms = Cms.CLASSICPRESS
            site_params = _classicpress_params(fields["site_url"])
            if site_params is not None:
                cms_version = site_params.get("ver")
        if "php" in params:
            php_version = params["php"]
        if "locale" in params:
            locale = params["locale"]

    cms_version = _normalize_cms_version(cms_version)
    cms_aggregate = aggregate_version(cms_version)

    return RequestRecord(
        timestamp=timestamp,
        ip=match.group("ip"),
        slug=slug,
        http_method=fields["http_method"],
        action=fields["action"],
        installed_version=fields["installed_version"],
        cms=cms,
        cms_version=cms_version,
        cms_version_aggregate=f"{cms.value}/{cms_aggregate or ''}",
        php_version=php_version,
        php_version_aggregate=aggregate_version(php_version),
        locale=locale,
        site_url=fields["site_url"],
    )
