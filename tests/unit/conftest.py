"""Shared fixtures: execution context and an in-memory iptables."""

import shlex
from pathlib import Path
from typing import Optional

import pytest

from vipsync.core.config import AgentConfig, AppConfig, DrainConfig, EnvOverrides
from vipsync.core.context import create_context
from vipsync.core.executor import CommandResult
from vipsync.services.drain import DrainMarkerStore
from vipsync.services.iptables import IptablesService


BUILTIN_CHAINS = {
    ("nat", "PREROUTING"),
    ("nat", "INPUT"),
    ("nat", "OUTPUT"),
    ("nat", "POSTROUTING"),
    ("filter", "INPUT"),
    ("filter", "FORWARD"),
    ("filter", "OUTPUT"),
}

MUTATING_OPS = {"-N", "-A", "-D", "-F"}


class FakeIptables:
    """Executor stand-in that emulates `iptables -w -t <table>` in memory.

    Supports -S, -N, -C, -A, -D and -F with the exit codes real iptables
    uses. Every mutating call is recorded in `mutations`.
    """

    def __init__(self) -> None:
        self.chains: dict[tuple[str, str], list[tuple[str, ...]]] = {
            key: [] for key in BUILTIN_CHAINS
        }
        self.mutations: list[list[str]] = []
        self.calls: list[list[str]] = []
        self.fail_ops: set[str] = set()

    def rules(self, table: str, chain: str) -> list[tuple[str, ...]]:
        return self.chains[(table, chain)]

    def run(
        self,
        command: list[str],
        *,
        check: bool = True,
        read_only: bool = False,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        self.calls.append(command)
        assert command[1] == "-w"
        assert command[2] == "-t"
        table, op, chain = command[3], command[4], command[5]
        spec = tuple(command[6:])
        key = (table, chain)

        if op in MUTATING_OPS:
            self.mutations.append(command)

        if op in self.fail_ops:
            return self._result(command, 4, stderr="Permission denied (you must be root)")

        if op == "-N":
            if key in self.chains:
                return self._result(command, 1, stderr="Chain already exists.")
            self.chains[key] = []
            return self._result(command, 0)

        if key not in self.chains:
            return self._result(command, 1, stderr="No chain/target/match by that name.")

        if op == "-S":
            return self._result(command, 0, stdout=self._render(table, chain))
        if op == "-C":
            return self._result(command, 0 if spec in self.chains[key] else 1)
        if op == "-A":
            self.chains[key].append(spec)
            return self._result(command, 0)
        if op == "-D":
            if spec not in self.chains[key]:
                return self._result(
                    command, 1,
                    stderr="Bad rule (does a matching rule exist in that chain?).",
                )
            self.chains[key].remove(spec)
            return self._result(command, 0)
        if op == "-F":
            self.chains[key] = []
            return self._result(command, 0)

        raise AssertionError(f"unsupported iptables op {op}")

    def _render(self, table: str, chain: str) -> str:
        if (table, chain) in BUILTIN_CHAINS:
            lines = [f"-P {chain} ACCEPT"]
        else:
            lines = [f"-N {chain}"]
        for spec in self.chains[(table, chain)]:
            # iptables normalizes --dst X to -d X/32
            tokens = list(spec)
            if tokens[:1] == ["--dst"]:
                tokens = ["-d", f"{tokens[1]}/32"] + tokens[2:]
            lines.append(f"-A {chain} {shlex.join(tokens)}")
        return "\n".join(lines) + "\n"

    @staticmethod
    def _result(command, code, stdout="", stderr="") -> CommandResult:
        return CommandResult(command=command, return_code=code, stdout=stdout, stderr=stderr)


def redirected(fake: FakeIptables, chain: str) -> set[str]:
    """Addresses with a REDIRECT rule in a nat chain."""
    return {spec[1] for spec in fake.rules("nat", chain)}


@pytest.fixture
def run_dir(tmp_path: Path) -> Path:
    path = tmp_path / "cloud-routes"
    path.mkdir()
    return path


@pytest.fixture
def ctx(run_dir: Path):
    context = create_context()
    config = AppConfig(
        config=AgentConfig(drain=DrainConfig(run_dir=run_dir)),
        overrides=EnvOverrides(),
    )
    return context.with_config(config)


@pytest.fixture
def fake_iptables() -> FakeIptables:
    return FakeIptables()


@pytest.fixture
def iptables(ctx, fake_iptables) -> IptablesService:
    return IptablesService(ctx, fake_iptables, ctx.config.firewall)


@pytest.fixture
def markers(ctx) -> DrainMarkerStore:
    return DrainMarkerStore(ctx, ctx.config.drain)
