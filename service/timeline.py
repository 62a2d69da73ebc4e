"""Virtual-clock cooperative scheduler for scene coroutines.

Scene animations are plain generators that yield commands. Helpers such as
``wait_for`` and ``tween`` are themselves generators, so callers chain them
with ``yield from``. The Timeline samples the virtual clock once per frame
(``frame / fps``) and resumes every coroutine whose command has completed.

Each task keeps its own local time. A wait that ends between two frames
resumes on the first frame at or after its end, but the task's local time is
set to the exact end, so long chains of waits never accumulate frame drift.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import math
from typing import Callable, Generator, Iterator, Tuple

from domain.short_video import INVALID_CONFIG_CODE, RenderValidationError

EPSILON = 1e-9

Easing = Callable[[float], float]


def linear(value: float) -> float:
    return value


def ease_in_quad(value: float) -> float:
    return value * value


def ease_out_quad(value: float) -> float:
    return 1.0 - (1.0 - value) * (1.0 - value)


def ease_in_out_quad(value: float) -> float:
    if value < 0.5:
        return 2.0 * value * value
    return 1.0 - (-2.0 * value + 2.0) ** 2 / 2.0


def ease_in_out_cubic(value: float) -> float:
    if value < 0.5:
        return 4.0 * value**3
    return 1.0 - (-2.0 * value + 2.0) ** 3 / 2.0


def ease_out_quart(value: float) -> float:
    return 1.0 - (1.0 - value) ** 4


def ease_in_back(value: float) -> float:
    overshoot = 1.70158
    return (overshoot + 1.0) * value**3 - overshoot * value**2


def ease_out_back(value: float) -> float:
    overshoot = 1.70158
    shifted = value - 1.0
    return 1.0 + (overshoot + 1.0) * shifted**3 + overshoot * shifted**2


def ease_in_out_sine(value: float) -> float:
    return -(math.cos(math.pi * value) - 1.0) / 2.0


EASINGS = {
    "linear": linear,
    "ease_in_quad": ease_in_quad,
    "ease_out_quad": ease_out_quad,
    "ease_in_out_quad": ease_in_out_quad,
    "ease_in_out_cubic": ease_in_out_cubic,
    "ease_out_quart": ease_out_quart,
    "ease_in_back": ease_in_back,
    "ease_out_back": ease_out_back,
    "ease_in_out_sine": ease_in_out_sine,
}


@dataclass(frozen=True)
class WaitFor:
    """Suspend until the task's local time advances by seconds."""

    seconds: float


@dataclass(frozen=True)
class Tween:
    """Call update with eased progress every frame for seconds."""

    seconds: float
    update: Callable[[float], None]
    easing: Easing


@dataclass(frozen=True)
class Join:
    """Run child processes concurrently and resume when all finish."""

    processes: Tuple[Generator, ...]


@dataclass(frozen=True)
class NextFrame:
    """Suspend until the next frame."""


@dataclass(frozen=True)
class Settle:
    """Synchronize layout without consuming virtual time."""


Command = WaitFor | Tween | Join | NextFrame | Settle | None
Process = Generator[Command, None, None]


def wait_for(seconds: float) -> Process:
    """Suspend the caller for seconds; non-positive waits do not suspend."""
    if seconds > 0:
        yield WaitFor(seconds)


def tween(seconds: float, update: Callable[[float], None], easing: Easing = linear) -> Process:
    """Drive update from 0 to 1 over seconds."""
    if seconds <= 0:
        update(easing(1.0))
        return
    yield Tween(seconds, update, easing)


def all_of(*processes: Process) -> Process:
    """Run processes concurrently from the caller's local time."""
    if processes:
        yield Join(tuple(processes))


def sequence(*processes: Process) -> Process:
    """Run processes one after another."""
    for process in processes:
        yield from process


def delay(seconds: float, process: Process) -> Process:
    """Wait, then run process."""
    yield from wait_for(seconds)
    yield from process


def next_frame() -> Process:
    yield NextFrame()


def settle() -> Process:
    """Force a layout synchronization before measuring nodes."""
    yield Settle()


class TaskState(str, Enum):
    """Scheduling state of a task."""

    READY = "ready"
    WAITING = "waiting"
    TWEENING = "tweening"
    JOINING = "joining"
    NEXT_FRAME = "next_frame"
    DONE = "done"


class Task:
    """A running process with its own local clock."""

    def __init__(self, process: Process, local_time: float) -> None:
        self.process = process
        self.local_time = local_time
        self.state = TaskState.READY
        self.wake_time = 0.0
        self.tween: Tween | None = None
        self.tween_start = 0.0
        self.tween_frame = -1
        self.children: list[Task] = []
        self.blocked_frame = -1

    @property
    def done(self) -> bool:
        return self.state == TaskState.DONE


class Timeline:
    """Frame-stepped scheduler driving tasks on a virtual clock."""

    def __init__(self, fps: int, on_settle: Callable[[], None] | None = None) -> None:
        if fps <= 0:
            raise RenderValidationError(INVALID_CONFIG_CODE, "fps must be positive")
        self.fps = fps
        self.frame = 0
        self._on_settle = on_settle
        self._tasks: list[Task] = []

    @property
    def time(self) -> float:
        return self.frame / self.fps

    @property
    def idle(self) -> bool:
        """True when every spawned task has finished."""
        return not self._tasks

    def spawn(self, process: Process) -> Task:
        """Schedule a process starting at the current virtual time."""
        task = Task(process, self.time)
        self._tasks.append(task)
        return task

    def tick(self) -> None:
        """Resume every task that is ready at the current frame time."""
        now = self.time
        progressed = True
        while progressed:
            progressed = False
            for task in list(self._tasks):
                if task.done:
                    continue
                if self._poll(task, now):
                    self._resume(task, now)
                    progressed = True
            self._tasks = [task for task in self._tasks if not task.done]

    def frames(self, total_frames: int) -> Iterator[float]:
        """Tick each frame and yield its time for rendering."""
        for _ in range(total_frames):
            self.tick()
            yield self.time
            self.frame += 1

    def run(self, max_seconds: float) -> None:
        """Tick frames until all tasks finish or max_seconds is reached."""
        while True:
            self.tick()
            if self.idle or self.time >= max_seconds - EPSILON:
                return
            self.frame += 1

    def _poll(self, task: Task, now: float) -> bool:
        if task.state == TaskState.READY:
            return True
        if task.state == TaskState.WAITING:
            if now + EPSILON >= task.wake_time:
                task.local_time = task.wake_time
                return True
            return False
        if task.state == TaskState.TWEENING:
            return self._advance_tween(task, now)
        if task.state == TaskState.JOINING:
            return self._join_complete(task)
        if task.state == TaskState.NEXT_FRAME:
            if self.frame > task.blocked_frame:
                task.local_time = max(task.local_time, now)
                return True
            return False
        return False

    def _advance_tween(self, task: Task, now: float) -> bool:
        active = task.tween
        if active is None:
            return True
        end_time = task.tween_start + active.seconds
        if now + EPSILON >= end_time:
            active.update(active.easing(1.0))
            task.local_time = end_time
            task.tween = None
            return True
        if task.tween_frame != self.frame:
            progress = (now - task.tween_start) / active.seconds
            active.update(active.easing(min(1.0, max(0.0, progress))))
            task.tween_frame = self.frame
        return False

    def _join_complete(self, task: Task) -> bool:
        if any(not child.done for child in task.children):
            return False
        task.local_time = max(
            [task.local_time] + [child.local_time for child in task.children]
        )
        task.children = []
        return True

    def _resume(self, task: Task, now: float) -> None:
        task.state = TaskState.READY
        while True:
            try:
                command = task.process.send(None)
            except StopIteration:
                task.state = TaskState.DONE
                return

            if isinstance(command, WaitFor):
                wake_time = task.local_time + command.seconds
                if now + EPSILON >= wake_time:
                    task.local_time = max(task.local_time, wake_time)
                    continue
                task.wake_time = wake_time
                task.state = TaskState.WAITING
                return

            if isinstance(command, Tween):
                task.tween = command
                task.tween_start = task.local_time
                task.tween_frame = -1
                if self._advance_tween(task, now):
                    continue
                task.state = TaskState.TWEENING
                return

            if isinstance(command, Join):
                task.children = [
                    Task(process, task.local_time) for process in command.processes
                ]
                for child in task.children:
                    self._tasks.append(child)
                    self._resume(child, now)
                if self._join_complete(task):
                    continue
                task.state = TaskState.JOINING
                return

            if isinstance(command, Settle):
                if self._on_settle is not None:
                    self._on_settle()
                continue

            if command is None or isinstance(command, NextFrame):
                task.blocked_frame = self.frame
                task.state = TaskState.NEXT_FRAME
                return

            raise TypeError(f"unsupported timeline command: {command!r}")


def run_process(process: Process, fps: int, max_seconds: float) -> Task:
    """Run a single process to completion and return its finished task."""
    timeline = Timeline(fps)
    task = timeline.spawn(process)
    timeline.run(max_seconds)
    return task
