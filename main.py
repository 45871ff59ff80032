"""update-log-stats — turn update-server request logs into daily statistics."""

import json
import logging
import os
import sys
from argparse import ArgumentParser

from update_stats.analyser import LogAnalyser
from update_stats.config import Config, load_config, load_yaml_config
from update_stats.date_range import DateRange, as_timestamp
from update_stats.errors import ConfigurationError, UpdateStatsError
from update_stats.progress import ProgressReporter
from update_stats.reader import find_log_files
from update_stats.report import Report
from update_stats.store import StatsDatabase

logger = logging.getLogger("update_stats")


def build_parser() -> ArgumentParser:
    """Build the CLI argument parser."""
    parser = ArgumentParser(
        prog="update-log-stats",
        description="Parse update server request logs into daily statistics.",
        epilog='Example: update-log-stats --dir "/path/to/logs" --from-last-date',
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--log", action="append", metavar="FILE",
        help="Parse this log file (may be repeated)",
    )
    source.add_argument(
        "--dir", metavar="DIRECTORY",
        help="Parse all .log files in this directory",
    )
    parser.add_argument("--database", help="Override the database file name")
    parser.add_argument(
        "--from", dest="from_date", metavar="YYYY-MM-DD",
        help="Start parsing from this date (UTC)",
    )
    parser.add_argument(
        "--to", dest="to_date", metavar="YYYY-MM-DD",
        help="Parse up to this date (UTC, exclusive)",
    )
    parser.add_argument(
        "--from-last-date", action="store_true",
        help="Restart analysis from the last processed date. No effect on an empty database.",
    )
    parser.add_argument(
        "--ignore-bad-lines", action="store_true",
        help="Continue parsing even if there are lots of consecutive malformed lines",
    )
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("--quiet", action="store_true", help="Hide the progress bar")
    parser.add_argument(
        "--report", metavar="SLUG",
        help="Print a JSON report for SLUG instead of parsing logs",
    )
    return parser


def resolve_files(args) -> list[str]:
    """Log files named on the command line. Raises ConfigurationError."""
    if args.log:
        for path in args.log:
            if not os.path.isfile(path):
                raise ConfigurationError(f"Log file not found: {path}")
        return list(args.log)
    if args.dir:
        return find_log_files(args.dir)
    raise ConfigurationError(
        'You must specify a log file name. Example: --log "/path/to/request.log"'
    )


def run_parse(args, config: Config, files: list[str]) -> int:
    from_ts = as_timestamp(args.from_date)
    to_ts = as_timestamp(args.to_date)

    progress = ProgressReporter(enabled=config.show_progress)
    database = StatsDatabase(config.database, config.enabled_metrics)
    try:
        analyser = LogAnalyser(
            files,
            database,
            metrics=config.enabled_metrics,
            combinations=config.combinations,
            max_consecutive_bad_lines=config.max_consecutive_bad_lines,
            progress=progress,
        )

        if args.from_last_date:
            if from_ts is not None:
                logger.info("Ignoring --from-last-date because --from is specified.")
            else:
                last_date = analyser.get_last_processed_date()
                if last_date is None:
                    logger.info("Ignoring --from-last-date because the database is empty.")
                else:
                    from_ts = as_timestamp(last_date)

        analyser.parse(from_ts, to_ts, ignore_consecutive_errors=args.ignore_bad_lines)
    finally:
        database.close()

    progress.sample_memory()
    logger.info("Done. Peak memory usage: %.2f MiB", progress.peak_rss_mib)
    return 0


def build_report(report: Report) -> dict:
    charts = {
        "active_installs": report.active_installs_chart(),
        "active_versions": report.active_version_chart(),
        "cms_versions": report.cms_version_chart(),
        "php_versions": report.php_version_chart(),
        "requests": report.request_chart(),
    }
    return {
        "slug": report.slug,
        "from": report.date_range.start_date(),
        "to": report.date_range.end_date(),
        "total_requests": report.total_requests(),
        "active_installs": report.active_installs(),
        "installs_per_day": report.installs_per_day(),
        "requests_per_site": report.requests_per_site(),
        "charts": {
            name: {"area": chart.get_area_chart_data(), "pie": chart.get_pie_chart_data()}
            for name, chart in charts.items()
        },
        "combinations": {
            metric: report.version_combinations(metric, "installed_version")
            for metric in ("cms_version_aggregate", "php_version_aggregate")
        },
    }


def run_report(args, config: Config) -> int:
    date_range = DateRange(args.from_date, args.to_date)
    database = StatsDatabase(config.database, config.enabled_metrics)
    try:
        if args.report not in database.list_slugs():
            raise ConfigurationError(f'Slug "{args.report}" not found')
        report = Report(
            database, args.report, date_range,
            other_group_fraction=config.other_group_fraction,
            group_day_threshold=config.group_day_threshold,
        )
        print(json.dumps(build_report(report), indent=2))
    finally:
        database.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args, load_yaml_config(args.config))
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [STATS] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        if args.report:
            return run_report(args, config)
        return run_parse(args, config, resolve_files(args))
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 2
    except UpdateStatsError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)
