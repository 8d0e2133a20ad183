import argparse
import asyncio
import json
import sys
from src.filesearch.server_app import FileSearchMCP
from src.filesearch.cli import cmd_check_config, cmd_query
from src.filesearch.config import ConfigError
from src.filesearch.search import RetrievalError
from src.utils.logger import configure_logging, get_logger

logger = get_logger("main")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="FileSearch MCP server")
    sub = parser.add_subparsers(dest="command", required=True)

    # start
    start = sub.add_parser("start", help="Start the MCP server")
    start.add_argument("--transport", choices=["stdio", "sse"], default=None)
    start.add_argument("--host", type=str, default=None)
    start.add_argument("--port", type=int, default=None)
    start.add_argument("--config", type=str, default=None, help="Path to config.json")
    start.add_argument("--audit-log-dir", type=str, default=None)
    start.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default=None
    )

    # check-config
    check = sub.add_parser("check-config", help="Validate config.json and environment")
    check.add_argument("--config", type=str, default=None)

    # query
    query = sub.add_parser("query", help="Run one retrieveDocs call and print the chunks")
    query.add_argument("question", help="Natural-language question")
    query.add_argument("--config", type=str, default=None)

    return parser.parse_args(argv)


def _run_start(args) -> int:
    # Only pass flags given on the command line so env settings still apply
    overrides = {
        k: v
        for k, v in {
            "transport": args.transport,
            "host": args.host,
            "port": args.port,
            "config": args.config,
            "audit_log_dir": args.audit_log_dir,
            "log_level": args.log_level,
        }.items()
        if v is not None
    }
    app = FileSearchMCP(**overrides)
    try:
        app.setup()
    except ConfigError as e:
        logger.error(f"❌ Failed to load configuration: {e}")
        return 1
    try:
        asyncio.run(app.run())
    except Exception as e:
        logger.error(f"❌ Failed to start FileSearch MCP server: {e}")
        return 1
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)

    if args.command == "start":
        return _run_start(args)

    configure_logging()
    if args.command == "check-config":
        try:
            print(cmd_check_config(args.config))
        except ConfigError as e:
            logger.error(f"❌ {e}")
            return 1
        return 0

    if args.command == "query":
        try:
            print(asyncio.run(cmd_query(args.question, config_path=args.config)))
        except ConfigError as e:
            logger.error(f"❌ Failed to load configuration: {e}")
            return 1
        except RetrievalError as e:
            print(json.dumps(e.error.to_dict(), indent=2))
            return 1
        except ValueError as e:
            logger.error(f"❌ {e}")
            return 1
        return 0

    return 2


if __name__ == "__main__":
    sys.exit(main())
