"""Shared fixtures for opskills tests: temporary skill trees."""

import sys
from pathlib import Path

import pytest

from opskills.skill.loader import SkillLoader

KUBEKEY_SKILL_MD = """---
name: kubekey
description: Manage Kubernetes clusters with KubeKey
license: Apache-2.0
compatibility: linux
---

# KubeKey

Create and scale clusters.
"""

ECHO_SKILL_MD = """---
name: echo
description: Echo parameters back
---

Prints its arguments and environment.
"""

ECHO_MAIN = """#!/bin/bash
echo "script=main"
echo "args=$*"
echo "name=$SKILL_NAME"
echo "cwd=$(pwd)"
"""

ECHO_CREATE = """#!/bin/bash
echo "script=create"
echo "args=$*"
echo "foo=$SKILL_PARAM_foo"
"""

ECHO_FAIL = """#!/bin/bash
echo "about to fail"
echo "boom" >&2
exit 3
"""

ECHO_SLEEP = """#!/bin/bash
sleep 30
"""

ECHO_PAUSE = """#!/bin/bash
sleep "${SKILL_PARAM_seconds:-1}"
echo "paused ${SKILL_PARAM_seconds:-1}s"
"""


def write_skill(root: Path, dir_name: str, skill_md: str, scripts=None, examples=None) -> Path:
    skill_dir = root / dir_name
    (skill_dir / "scripts").mkdir(parents=True)
    (skill_dir / "SKILL.md").write_text(skill_md, encoding="utf-8")
    for name, content in (scripts or {}).items():
        path = skill_dir / "scripts" / name
        path.write_text(content, encoding="utf-8")
        path.chmod(0o755)
    if examples:
        (skill_dir / "examples").mkdir()
        for name, content in examples.items():
            (skill_dir / "examples" / name).write_text(content, encoding="utf-8")
    return skill_dir


@pytest.fixture
def skills_dir(tmp_path):
    """Skills directory with a kubekey skill and an echo skill."""
    root = tmp_path / "skills"
    root.mkdir()
    write_skill(
        root,
        "kubekey",
        KUBEKEY_SKILL_MD,
        scripts={
            "create_cluster.sh": "#!/bin/bash\necho creating cluster\n",
            "add_nodes.sh": "#!/bin/bash\necho adding nodes\n",
        },
        examples={"cluster-config.yaml": "apiVersion: v1\nkind: Cluster\n"},
    )
    write_skill(
        root,
        "echo",
        ECHO_SKILL_MD,
        scripts={
            "main.sh": ECHO_MAIN,
            "create.sh": ECHO_CREATE,
            "fail.sh": ECHO_FAIL,
            "sleep.sh": ECHO_SLEEP,
            "pause.sh": ECHO_PAUSE,
        },
    )
    return root


@pytest.fixture
def registry(skills_dir):
    return SkillLoader(skills_dir).load_registry()


@pytest.fixture
def echo_skill(registry):
    return registry.get("echo")


@pytest.fixture
def kubekey_skill(registry):
    return registry.get("kubekey")


@pytest.fixture
def serve_command(skills_dir):
    """Command and args that run this package's stdio skill server."""
    return sys.executable, ["-m", "opskills", "serve", "--skills-dir", str(skills_dir)]
