"""Helpers around the docker command line: loading images, inspecting containers."""

from __future__ import annotations

import os
import shutil
import subprocess
from typing import BinaryIO

_RUN_ERROR_EXIT_CODE = 125
_NOT_FOUND_EXIT_CODE = 127


class DockerError(RuntimeError):
    """A docker operation failed."""


def run_cmd_and_wait(name: str, *args: str) -> str:
    """Run a program to completion and return its standard output.

    Raises subprocess.CalledProcessError when it exits with a non-zero status.
    """
    argv = [name, *args]
    completed = subprocess.run(argv, capture_output=True, text=True, check=False)
    if completed.returncode != 0:
        raise subprocess.CalledProcessError(
            completed.returncode, argv, output=completed.stdout, stderr=completed.stderr
        )
    return completed.stdout


def run_docker_load(stream: BinaryIO) -> None:
    """Feed an image archive to `docker load`."""
    argv = ["docker", "load"]
    process = subprocess.Popen(argv, stdin=subprocess.PIPE)
    try:
        try:
            shutil.copyfileobj(stream, process.stdin)
        finally:
            process.stdin.close()
    except BaseException:
        process.kill()
        process.wait()
        raise
    returncode = process.wait()
    if returncode != 0:
        raise subprocess.CalledProcessError(returncode, argv)


def load_docker(directory: str, docker_image_file_name: str) -> None:
    """Load the image archive stored in a directory into docker."""
    path = os.path.join(directory, docker_image_file_name)
    try:
        image_file = open(path, "rb")
    except OSError as exc:
        raise DockerError(
            f"fail to read docker image file {docker_image_file_name}: {exc}"
        ) from exc
    with image_file:
        try:
            run_docker_load(image_file)
        except (OSError, subprocess.CalledProcessError) as exc:
            raise DockerError(
                f"fail to load docker image from file {docker_image_file_name}: {exc}"
            ) from exc


def confirm_container_is_running_or_exists(container_name: str, is_running: bool) -> bool:
    """Tell whether a container exists, or, with is_running, insist that it runs."""
    args = ["ps", "--all", "--filter", f"name={container_name}"]
    if is_running:
        args += ["--filter", "status=running"]
    args += ["--format", "{{.Names}}"]

    try:
        response = run_cmd_and_wait("docker", *args)
    except (OSError, subprocess.CalledProcessError) as exc:
        raise DockerError(
            f"unable to confirm whether {container_name} is running or exists. error\n{exc}"
        ) from exc

    response = response.removesuffix("\n")
    if response != container_name:
        if is_running:
            raise DockerError(f"container {container_name} is not running")
        return False
    return True


def is_container_run_error(err: BaseException) -> bool:
    """True if docker reported that it could not run the container."""
    return (
        isinstance(err, subprocess.CalledProcessError)
        and err.returncode == _RUN_ERROR_EXIT_CODE
    )


def parse_docker_error(component: str, err: BaseException) -> BaseException:
    """Turn a docker failure into a message about the component, where one fits."""
    if isinstance(err, subprocess.CalledProcessError):
        if err.returncode == _RUN_ERROR_EXIT_CODE:
            return DockerError(f"failed to launch {component}. Is it already running?")
        if err.returncode == _NOT_FOUND_EXIT_CODE:
            return DockerError(
                f"failed to launch {component}. Make sure Docker is installed and running"
            )
    return err


def try_pull_image(image_name: str) -> bool:
    """Pull an image; report whether it worked."""
    try:
        run_cmd_and_wait("docker", "pull", image_name)
    except (OSError, subprocess.CalledProcessError):
        return False
    return True