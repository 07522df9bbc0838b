"""Module entrypoint for ``python -m tdd_dag``."""

from __future__ import annotations

from tdd_dag.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
