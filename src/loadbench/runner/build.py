# src/loadbench/runner/build.py
# Making sure there is a client executable before anything is spawned.

import compileall
import logging
import os
import shlex
import subprocess
import sys

from ..errors import BuildError

logger = logging.getLogger(__name__)


class PythonClientBuild:
    """
    The bundled client, run as ``python -m loadbench.mqtt``.

    ensure() byte-compiles the whole loadbench package, since the client
    imports config and errors from outside loadbench.mqtt. Stale files are
    recompiled, so a broken source fails here once instead of in every
    spawned process.
    """

    module = "loadbench.mqtt"

    def __init__(self, python=sys.executable):
        self.python = python

    def source_dir(self):
        import loadbench
        return os.path.dirname(loadbench.__file__)

    def ensure(self):
        source_dir = self.source_dir()
        logger.info("Compiling client sources in %s", source_dir)
        if not compileall.compile_dir(source_dir, quiet=1):
            raise BuildError(f"client sources in {source_dir} do not compile")

    def command(self, role_args, settings):
        cmd = [self.python, "-m", self.module,
               "--broker", str(settings.broker),
               "--topic", settings.topic,
               "--qos", str(settings.qos),
               "--keepalive", str(settings.keepalive)]
        if settings.username is not None:
            cmd += ["--username", settings.username]
            if settings.password is not None:
                cmd += ["--password", settings.password]
        return cmd + list(role_args)


class ExternalClientBuild:
    """
    A prebuilt client binary with the same ``sub`` / ``pub <size> <duration>
    <interval>`` command line, optionally rebuilt by build_cmd first, e.g.
    ``gcc client.c -o client -lmosquitto``. The binary carries its own broker
    settings.
    """

    def __init__(self, executable, build_cmd=None):
        self.executable = executable
        self.build_cmd = build_cmd

    def ensure(self):
        if self.build_cmd:
            logger.info("Building client: %s", self.build_cmd)
            cmd = shlex.split(self.build_cmd) if isinstance(self.build_cmd, str) else self.build_cmd
            try:
                subprocess.run(cmd, check=True)
            except (OSError, subprocess.CalledProcessError) as e:
                raise BuildError(f"client build failed: {e}") from e
        if not os.path.isfile(self.executable):
            raise BuildError(f"client executable {self.executable} not found")
        if not os.access(self.executable, os.X_OK):
            raise BuildError(f"client executable {self.executable} is not executable")

    def command(self, role_args, settings):
        return [self.executable] + list(role_args)
