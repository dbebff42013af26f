"""Deployment orchestration for push and ping events.

A push for the followed branch runs these stages in order, stopping at the
first failure:

    sync -> pre-commands -> build -> restart -> post-commands

and then reports the outcome to the notification sink.  Build and restart
are skipped together when the repository opts out of building binaries.
A merge that leaves conflicts is logged as a warning and does not fail the
sync stage.
"""

from __future__ import annotations

import enum
from collections.abc import Coroutine
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from deployhook.errors import GitError, NotifyError, ProcessError
from deployhook.schemas.config import Command, DeployConfig
from deployhook.schemas.webhooks import PingEvent, PushEvent, WebhookEvent
from deployhook.services.config_resolver import (
    resolve_binaries,
    resolve_code_root,
    resolve_follow_branch,
    resolve_post_commands,
    resolve_pre_commands,
    resolve_should_build_binaries,
)
from deployhook.services.git_sync import MergeResult, Syncer
from deployhook.services.history import EventHistory, EventVariant
from deployhook.services.notifier import Notifier
from deployhook.services.process_runner import ProcessRunner

logger = structlog.get_logger()


class Stage(enum.StrEnum):
    SYNC = "sync"
    PRECOMMANDS = "precommands"
    BUILD = "build"
    RESTART = "restart"
    POSTCOMMANDS = "postcommands"


@dataclass(frozen=True)
class PipelineOutcome:
    """Result of handling one event; ``stage`` is set only on failure."""

    stage: Stage | None = None
    detail: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.stage is None

    @classmethod
    def success(cls) -> PipelineOutcome:
        return cls()

    @classmethod
    def failure(cls, stage: Stage, detail: str) -> PipelineOutcome:
        return cls(stage=stage, detail=detail)


class StageFailed(Exception):
    """Raised inside the pipeline to abort the remaining stages."""

    def __init__(self, stage: Stage, detail: str) -> None:
        super().__init__(detail)
        self.stage = stage
        self.detail = detail


class Deployer:
    """Runs the deployment pipeline for one event at a time.

    The deployer holds no per-event state; serialization is the dispatch
    queue's job.
    """

    def __init__(
        self,
        config: DeployConfig,
        runner: ProcessRunner,
        syncer: Syncer,
        history: EventHistory,
        notifier: Notifier | None = None,
    ) -> None:
        self.config = config
        self.runner = runner
        self.syncer = syncer
        self.history = history
        self.notifier = notifier

    async def handle(self, event: WebhookEvent) -> PipelineOutcome:
        """Dispatch on the event variant."""
        if isinstance(event, PingEvent):
            return await self.handle_ping(event)
        return await self.deploy(event)

    async def handle_ping(self, event: PingEvent) -> PipelineOutcome:
        logger.info("ping_received", repository=event.full_name, hook_url=event.hook.config.url)
        self.history.push(EventVariant.PING, event.acknowledgement)
        return PipelineOutcome.success()

    async def deploy(self, event: PushEvent) -> PipelineOutcome:
        """Run every stage for a push event and notify the outcome."""
        full_name = event.full_name
        log = logger.bind(repository=full_name, ref=event.ref)

        follow = resolve_follow_branch(self.config, full_name)
        if event.ref != f"refs/heads/{follow}":
            log.info("push_ignored", follow=follow)
            self.history.push(EventVariant.SKIPPED, f"{full_name}: {event.ref} is not {follow}")
            return PipelineOutcome.success()

        if event.deleted:
            log.info("push_ignored_branch_deleted")
            self.history.push(EventVariant.SKIPPED, f"{full_name}: {event.ref} was deleted")
            return PipelineOutcome.success()

        repo_path = self.config.default.repo_root / event.repository.name
        try:
            await _stage(Stage.SYNC, self._sync(full_name, repo_path, follow))
            await _stage(
                Stage.PRECOMMANDS,
                self._run_commands(Stage.PRECOMMANDS, resolve_pre_commands(self.config, full_name), repo_path),
            )
            if resolve_should_build_binaries(self.config, full_name):
                binaries = resolve_binaries(self.config, full_name)
                await _stage(Stage.BUILD, self._build(full_name, repo_path, binaries))
                await _stage(Stage.RESTART, self._restart(repo_path, binaries))
            else:
                log.info("build_skipped")
            await _stage(
                Stage.POSTCOMMANDS,
                self._run_commands(Stage.POSTCOMMANDS, resolve_post_commands(self.config, full_name), repo_path),
            )
        except StageFailed as exc:
            log.error("stage_failed", stage=exc.stage.value, detail=exc.detail)
            self.history.push(EventVariant.FAILURE, f"{full_name}: {exc.stage} failed: {exc.detail}")
            outcome = PipelineOutcome.failure(exc.stage, exc.detail)
            await self._notify(failure_message(event, outcome))
            return outcome

        log.info("deployment_succeeded")
        await self._notify(success_message(event))
        return PipelineOutcome.success()

    async def _sync(self, full_name: str, repo_path: Path, branch: str) -> None:
        result = await self.syncer.sync(repo_path, branch, self.config.default.ssh_private_key)
        if result is MergeResult.CONFLICTED:
            logger.warning("sync_left_conflicts", repository=full_name, path=str(repo_path))
            self.history.push(
                EventVariant.PULL,
                f"{full_name}: merge left conflicts, manual resolution required",
            )
        else:
            self.history.push(EventVariant.PULL, f"{full_name}: {result.value}")

    async def _run_commands(self, stage: Stage, commands: list[Command] | None, repo_path: Path) -> None:
        if not commands:
            return
        for command in commands:
            await self._run(command, repo_path)
        self.history.push(
            EventVariant.COMMANDS, f"{stage}: ran {len(commands)} command(s)"
        )

    async def _build(self, full_name: str, repo_path: Path, binaries: list[str]) -> None:
        build_dir = repo_path / resolve_code_root(self.config, full_name)
        cargo = str(self.config.default.cargo_path)
        for binary in binaries:
            await self._run(
                Command(program=cargo, args=["build", "--release", "--bin", binary]),
                build_dir,
            )
            self.history.push(EventVariant.BUILD, f"{full_name}: built {binary}")

    async def _restart(self, repo_path: Path, binaries: list[str]) -> None:
        supervisor = self.config.default.supervisor_path
        for binary in binaries:
            await self._run(
                Command(program=supervisor, args=["restart", binary]),
                repo_path,
            )
            self.history.push(EventVariant.RESTART, f"restarted {binary}")

    async def _run(self, command: Command, cwd_base: Path) -> None:
        """Run one command, raising ``ProcessError`` unless it exits 0."""
        try:
            returncode = await self.runner.run(command, cwd_base)
        except (OSError, TimeoutError) as exc:
            msg = f"`{command.display()}` could not be run: {str(exc) or type(exc).__name__}"
            raise ProcessError(msg) from exc
        if returncode != 0:
            msg = f"`{command.display()}` exited with status {returncode}"
            raise ProcessError(msg)

    async def _notify(self, message: str) -> None:
        options = self.config.default.notifications
        if self.notifier is None or options is None:
            return
        try:
            await self.notifier.notify(str(options.channel_id), message)
        except NotifyError:
            logger.exception("notification_failed")


async def _stage(stage: Stage, work: Coroutine[Any, Any, None]) -> None:
    try:
        await work
    except (GitError, ProcessError) as exc:
        raise StageFailed(stage, str(exc)) from exc


def _commit_parts(event: PushEvent) -> tuple[str, str, str]:
    commit = event.head_commit
    if commit is None:
        return "unknown", "", "unknown"
    return commit.short_id, commit.summary, commit.author.name


def success_message(event: PushEvent) -> str:
    short_id, summary, author = _commit_parts(event)
    return f"Deployed {event.full_name} at {short_id} ({summary}) by {author}"


def failure_message(event: PushEvent, outcome: PipelineOutcome) -> str:
    short_id, summary, author = _commit_parts(event)
    return (
        f"Failed to deploy {event.full_name} at {short_id} ({summary}) by {author}: "
        f"{outcome.stage} stage failed: {outcome.detail}"
    )
