from __future__ import annotations

import os
import pathlib
import subprocess


def top() -> pathlib.Path:
    """Return the Pulumi project directory (the one holding ``Pulumi.yaml``)."""
    if "IAMLINK_TOP" in os.environ:
        return pathlib.Path(os.environ["IAMLINK_TOP"])

    return pathlib.Path(
        subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],  # noqa: S607
            text=True,
            capture_output=True,
            check=False,
        ).stdout.strip()
    )


class Paths:
    @property
    def root(self) -> pathlib.Path:
        """Return the connections configuration directory.

        Raises:
            RuntimeError: If IAMLINK_ROOT is not set in the environment

        """
        if "IAMLINK_ROOT" not in os.environ:
            msg = "IAMLINK_ROOT environment variable not set."
            raise RuntimeError(msg)

        return pathlib.Path(os.environ["IAMLINK_ROOT"])

    @property
    def connections(self) -> pathlib.Path:
        return self.root / "__conn__"
