"""opskills serve --skills-dir DIR [--skill NAME]... [--timeout S]"""

from opskills.cli.output import die, run_async
from opskills.constants import DEFAULT_SCRIPT_TIMEOUT


def register(subparsers):
    p = subparsers.add_parser("serve", help="Serve skills as an MCP server over stdio")
    p.add_argument("--skills-dir", default="./skills",
                   help="Skills directory (default: ./skills)")
    p.add_argument("--skill", action="append", dest="skill_names", default=None,
                   help="Serve only this skill (repeatable; default: all)")
    p.add_argument("--timeout", type=float, default=DEFAULT_SCRIPT_TIMEOUT,
                   help=f"Script timeout in seconds (default: {DEFAULT_SCRIPT_TIMEOUT})")
    p.set_defaults(handler=handle)


def handle(args):
    from opskills.direct.executor import DirectExecutor
    from opskills.errors import BridgeError
    from opskills.mcp.skill_server import SkillServer
    from opskills.skill.loader import SkillLoader

    try:
        registry = SkillLoader(args.skills_dir).load_registry(args.skill_names)
    except BridgeError as e:
        die(e.message)

    server = SkillServer(registry, DirectExecutor(timeout=args.timeout))
    run_async(server.serve_stdio())
