"""opskills tools <server> --config FILE"""

from opskills.cli.output import die, print_result, run_async


def register(subparsers):
    p = subparsers.add_parser("tools", help="List the tools of an external MCP server")
    p.add_argument("server", help="Server name from the configuration")
    p.add_argument("--config", required=True,
                   help="Skills configuration file (YAML)")
    p.set_defaults(handler=handle)


async def _discover(manager, server_name):
    try:
        return await manager.discover_tools(server_name)
    finally:
        await manager.close()


def handle(args):
    from opskills.errors import BridgeError
    from opskills.mcp.manager import ExternalServerManager
    from opskills.skill.config import load_config

    try:
        config = load_config(args.config)
        tools = run_async(_discover(ExternalServerManager(config.mcp_servers), args.server))
    except BridgeError as e:
        die(str(e))

    print_result(tools)
