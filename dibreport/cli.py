import argparse
import json
import logging
import sys
import os
from dibreport.core.exceptions import ManifestError
from dibreport.core.registry import RegistrySnapshot, ReportRegistry
from dibreport.loader import ReportLoader
from dibreport.plugins.sources.registry import SourceRegistry
from dibreport.report import ReportGenerator

logger = logging.getLogger("dibreport")

def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number

def print_summary(snapshot: RegistrySnapshot):
    logger.info("Build report")
    for name in snapshot.image_names:
        record = snapshot.images.get(name)
        if record is None:
            logger.warning(f"\t[{name}]: NOT LOADED")
        elif record.build_log is None:
            logger.info(f"\t[{name}]: NO BUILD LOG")
        else:
            logger.info(f"\t[{name}]: BUILT")

    logger.info("Tests report")
    for record in snapshot.all_images():
        result = record.test_result
        if result is None:
            logger.info(f"\t[{record.name}]: SKIPPED")
        elif result.failed_cases():
            logger.error(f"\t[{record.name}]: FAILED: {len(result.failed_cases())}/{result.test_count} tests")
        else:
            logger.info(f"\t[{record.name}]: PASSED")
        if result is not None and not result.is_consistent:
            logger.warning(f"\t[{record.name}]: inconsistent results: {'; '.join(result.anomalies())}")

    logger.info("Scan report")
    for record in snapshot.all_images():
        if record.scan_result is None:
            logger.info(f"\t[{record.name}]: NOT SCANNED")
            continue
        counts = record.scan_result.severity_counts()
        logger.info(f"\t[{record.name}]: " + ", ".join(f"{k}={v}" for k, v in counts.items()))

def main(argv=None):
    parser = argparse.ArgumentParser(description="Image build report viewer")
    parser.add_argument("--source", default=os.environ.get("DIB_REPORT_SOURCE", "file"),
                        choices=SourceRegistry.available_sources(), help="Where report runs are read from")
    parser.add_argument("--location", default=os.environ.get("DIB_REPORT_LOCATION", "reports"),
                        help="Report root directory or base URL. Can also use DIB_REPORT_LOCATION env var.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Runs Command
    subparsers.add_parser("runs", help="List report runs, newest first")

    # Show Command
    show_parser = subparsers.add_parser("show", help="Load a report run and summarize it")
    show_parser.add_argument("--run", help="Report run name. Default: latest run.")
    show_parser.add_argument("--concurrency", type=positive_int, default=8, help="Maximum artifact reads in flight")
    show_parser.add_argument("--format-md", help="Path to generate Markdown report")
    show_parser.add_argument("--format-csv", help="Path to generate CSV report")
    show_parser.add_argument("--format-json", help="Path to write the loaded report data as JSON")

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    source = SourceRegistry.get_source(args.source, args.location)

    if args.command == "runs":
        runs = source.list_runs()
        if not runs:
            logger.warning(f"No report runs found in {args.location}")
        for run in runs:
            print(run)

    elif args.command == "show":
        registry = ReportRegistry()
        loader = ReportLoader(source, registry, concurrency=args.concurrency)
        try:
            summary = loader.load_run_sync(args.run)
        except ManifestError as e:
            logger.error(str(e))
            sys.exit(1)

        snapshot = registry.snapshot()
        print_summary(snapshot)
        for failure in summary.failures:
            logger.warning(f"Could not load {failure}")

        reporter = ReportGenerator(snapshot)
        if args.format_md:
            reporter.generate_markdown(args.format_md)
            logger.info(f"Markdown report ready: {args.format_md}")

        if args.format_csv:
            reporter.generate_csv(args.format_csv)
            logger.info(f"CSV report ready: {args.format_csv}")

        if args.format_json:
            with open(args.format_json, 'w') as f:
                json.dump(snapshot.to_dict(), f, indent=2)
            logger.info(f"JSON data ready: {args.format_json}")

    else:
        parser.print_help()

if __name__ == "__main__":
    main()
