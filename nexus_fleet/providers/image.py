"""Build context for the node image.

The image wraps the Nexus prover CLI. Its entry script bootstraps the prover
inside a detached ``screen`` session (so it survives the entry process losing
its terminal) and then streams the prover's log file as its own stdout, which
is what ``docker logs -f`` shows the operator.
"""

from __future__ import annotations

from pathlib import Path

from nexus_fleet.providers.base import ImageSpec

ENTRYPOINT_NAME = "entrypoint.sh"

# Where the entry script stores the node credential inside the container
PROVER_ID_FILE = "/root/.nexus/node-id"

# Name of the screen session running the prover
SESSION_NAME = "nexus"

# Seconds to wait before checking that the session came up
STARTUP_GRACE_SECONDS = 3

DOCKERFILE_TEMPLATE = """FROM {base_image}

ENV DEBIAN_FRONTEND=noninteractive
ENV PROVER_ID_FILE={prover_id_file}

RUN apt-get update && apt-get install -y \\
    curl \\
    screen \\
    bash \\
    && rm -rf /var/lib/apt/lists/*

RUN curl -sSL {installer_url} | NONINTERACTIVE=1 sh \\
    && ln -sf /root/.nexus/bin/nexus-network /usr/local/bin/nexus-network

COPY {entrypoint} /{entrypoint}
RUN chmod +x /{entrypoint}

ENTRYPOINT ["/{entrypoint}"]
"""

ENTRYPOINT_TEMPLATE = """#!/bin/bash
set -e

if [ -z "${cred}" ]; then
    echo "{cred} is not set"
    exit 1
fi

mkdir -p "$(dirname "{prover_id_file}")"
echo "${cred}" > "{prover_id_file}"

screen -S {session} -X quit >/dev/null 2>&1 || true
screen -dmS {session} bash -c "nexus-network start --node-id \\"${cred}\\" &>> {log}"
sleep {grace}

if screen -list | grep -q "{session}"; then
    echo "Node is running in the background"
else
    echo "Failed to start the node"
    cat {log}
    exit 1
fi

tail -f {log}
"""


def render_dockerfile(spec: ImageSpec) -> str:
    return DOCKERFILE_TEMPLATE.format(
        base_image=spec.base_image,
        installer_url=spec.installer_url,
        prover_id_file=PROVER_ID_FILE,
        entrypoint=ENTRYPOINT_NAME,
    )


def render_entrypoint(spec: ImageSpec) -> str:
    return ENTRYPOINT_TEMPLATE.format(
        cred=spec.credential_env_var,
        prover_id_file=PROVER_ID_FILE,
        session=SESSION_NAME,
        log=spec.container_log_path,
        grace=STARTUP_GRACE_SECONDS,
    )


def write_build_context(spec: ImageSpec, directory: Path) -> Path:
    """Write the Dockerfile and entry script into ``directory``."""
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "Dockerfile").write_text(render_dockerfile(spec))
    entrypoint = directory / ENTRYPOINT_NAME
    entrypoint.write_text(render_entrypoint(spec))
    entrypoint.chmod(0o755)
    return directory
