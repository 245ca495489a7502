"""opskills execute <skill> [--params '{...}'] [--config FILE] [--skills-dir DIR]"""

from opskills.cli.output import die, parse_params, print_result, run_async


def register(subparsers):
    p = subparsers.add_parser("execute", help="Execute a skill")
    p.add_argument("skill", help="Skill name")
    p.add_argument("--params", default="{}", dest="params_json",
                   help="Parameters as JSON string (default: {})")
    p.add_argument("--config", default=None,
                   help="Skills configuration file (YAML)")
    p.add_argument("--skills-dir", default="./skills",
                   help="Skills directory (default: ./skills)")
    p.set_defaults(handler=handle)


async def _execute(router, skill_name, params):
    try:
        return await router.execute(skill_name, params)
    finally:
        await router.close()


def handle(args):
    from pathlib import Path

    from opskills.errors import BridgeError
    from opskills.skill.config import default_config, load_config
    from opskills.skill.loader import SkillLoader
    from opskills.skill.registry import SkillRegistry
    from opskills.skill.router import ExecutionRouter

    params = parse_params(args.params_json)

    try:
        config = load_config(args.config) if args.config else default_config()
        if Path(args.skills_dir).is_dir():
            registry = SkillLoader(args.skills_dir).load_registry()
        else:
            registry = SkillRegistry()
        result = run_async(_execute(ExecutionRouter(registry, config), args.skill, params))
    except BridgeError as e:
        die(str(e))

    print_result(result)
    return 0 if result.success else 1
