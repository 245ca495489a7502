"""opskills CLI entry point.

Verbs:
    serve    expose skills as an MCP server over stdio
    execute  run one skill through the execution router
    tools    list the tools of a configured external MCP server
    skills   list the skills found in a skills directory
"""

import argparse

from opskills import __version__
from opskills.cli.verbs import execute, serve, skills, tools
from opskills.utils.logger import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="opskills",
        description="Run operations skills directly or through MCP servers",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-dir",
        default=None,
        help="Directory for rotating log files (default: $OPSKILLS_LOG_DIR)",
    )

    sub = parser.add_subparsers(dest="verb", required=True)

    serve.register(sub)
    execute.register(sub)
    tools.register(sub)
    skills.register(sub)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(debug=args.debug, log_dir=args.log_dir)

    handler = args.handler
    return handler(args)


if __name__ == "__main__":
    main()
