#!/usr/bin/env python3
"""
CLI interface for the acres collector

Usage:
    python -m acres_collector.cli.collector_cli status
    python -m acres_collector.cli.collector_cli stats
    python -m acres_collector.cli.collector_cli export --output-dir ./exports
    python -m acres_collector.cli.collector_cli clear
    python -m acres_collector.cli.collector_cli replay session_events.jsonl
    python -m acres_collector.cli.collector_cli serve --port 8000
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from ..collector import AcresCollector
from ..config import Settings, get_settings
from ..services.dispatcher import FileExportSink
from ..utils.logging import configure_logging, get_logger


logger = get_logger(__name__)


class CollectorCLI:
    """Command-line interface over a collector built from settings"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.collector: Optional[AcresCollector] = None

    async def open(self) -> AcresCollector:
        self.collector = AcresCollector.from_settings(self.settings)
        await self.collector.start()
        return self.collector

    async def close(self) -> None:
        if self.collector is not None:
            await self.collector.close()

    async def show_status(self) -> None:
        """Print store sizes"""
        status = self.collector.status()
        print("📊 Collector Status:")
        print(f"  Properties: {status['properties']}")
        print(f"  Crop profiles: {status['profiles']}")
        print(f"  Pending crop requests: {status['pending_crop_requests']}")

    async def show_stats(self) -> None:
        """Print properties per county"""
        stats = await self.collector.dispatcher.county_stats()
        print("🗺️ Properties by County:")
        for fips, entry in stats['counties'].items():
            print(f"  • {entry['name']} ({fips}): {entry['count']}")
        print(f"  Total: {stats['total']}")

    async def export(self, output_dir: Optional[Path]) -> int:
        """Write the CSV export"""
        dispatcher = self.collector.dispatcher
        if output_dir is not None:
            dispatcher.export_sink = FileExportSink(output_dir, self.settings.EXPORT_FILENAME)

        result = await dispatcher.export()
        if result['status'] == 'error':
            print(f"❌ Export failed: {result['message']}")
            return 1
        print(f"✅ Exported {len(self.collector.engine)} properties to {result['path']}")
        return 0

    async def clear(self) -> int:
        result = await self.collector.dispatcher.clear()
        if result['status'] == 'error':
            print(f"❌ Clear failed: {result['message']}")
            return 1
        print("✅ All collected data cleared")
        return 0

    async def replay(self, events_file: Path) -> int:
        """Feed a JSON-lines event log through the collector"""
        if not events_file.exists():
            print(f"❌ Events file not found: {events_file}")
            return 1

        before = len(self.collector.engine)
        applied = 0
        skipped = 0
        with open(events_file, 'r', encoding='utf-8') as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    event = json.loads(line)
                except json.JSONDecodeError as e:
                    logger.warning("Skipping malformed event line", line=line_number, error=str(e))
                    skipped += 1
                    continue
                await self.collector.replay_event(event)
                applied += 1

        added = len(self.collector.engine) - before
        print(f"✅ Replayed {applied} events ({skipped} skipped), {added} new properties")
        return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser"""
    parser = argparse.ArgumentParser(
        description="Acres Collector CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s status                     Show store sizes
  %(prog)s stats                      Properties per county
  %(prog)s export --output-dir out    Write the CSV export
  %(prog)s clear                      Drop all collected data
  %(prog)s replay events.jsonl        Ingest a recorded event log
  %(prog)s serve --port 8000          Run the HTTP API
        """
    )

    parser.add_argument(
        'command',
        choices=['status', 'stats', 'export', 'clear', 'replay', 'serve'],
        help='Command to execute'
    )

    parser.add_argument(
        'events_file',
        nargs='?',
        type=Path,
        help='JSON-lines event log (required for replay)'
    )

    parser.add_argument(
        '--output-dir',
        type=Path,
        default=None,
        help='Directory for the CSV export (default: ACRES_EXPORT_DIR)'
    )

    parser.add_argument('--host', default='127.0.0.1', help='Bind host for serve')
    parser.add_argument('--port', type=int, default=8000, help='Bind port for serve')

    return parser


def serve(host: str, port: int) -> None:
    import uvicorn

    from ..api import create_app

    uvicorn.run(create_app(), host=host, port=port)


async def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    """Main CLI entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    if args.command == 'replay' and not args.events_file:
        print("❌ Error: events_file is required for replay command")
        parser.print_help()
        return 1
    if args.command == 'serve':
        # uvicorn owns its event loop; run() dispatches serve before entering one
        print("❌ Error: serve must be started through the acres-collector script")
        return 1

    cli = CollectorCLI(settings)
    try:
        await cli.open()

        if args.command == 'status':
            await cli.show_status()
            return 0
        elif args.command == 'stats':
            await cli.show_stats()
            return 0
        elif args.command == 'export':
            return await cli.export(args.output_dir)
        elif args.command == 'clear':
            return await cli.clear()
        elif args.command == 'replay':
            return await cli.replay(args.events_file)
        return 1

    except KeyboardInterrupt:
        print("\n🛑 Operation cancelled by user")
        return 1
    except Exception as e:
        print(f"❌ Unexpected error: {e}")
        logger.error("CLI error", error=str(e))
        return 1
    finally:
        await cli.close()


def run() -> None:
    """Console script entry point"""
    argv = sys.argv[1:]
    if argv and argv[0] == 'serve':
        args = create_parser().parse_args(argv)
        configure_logging(get_settings().LOG_LEVEL, get_settings().LOG_JSON)
        serve(args.host, args.port)
        return
    sys.exit(asyncio.run(main(argv)))


if __name__ == '__main__':
    run()
