"""opskills skills [--skills-dir DIR]"""

from opskills.cli.output import die, print_result


def register(subparsers):
    p = subparsers.add_parser("skills", help="List skills in a skills directory")
    p.add_argument("--skills-dir", default="./skills",
                   help="Skills directory (default: ./skills)")
    p.set_defaults(handler=handle)


def handle(args):
    from opskills.errors import BridgeError
    from opskills.skill.loader import SkillLoader

    try:
        skills = SkillLoader(args.skills_dir).load_all()
    except BridgeError as e:
        die(e.message)

    print_result(skills)
