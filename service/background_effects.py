"""Decorative background line and particle fields."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Callable, Sequence

from domain.effects import (
    LineEffectConfig,
    LineEffectType,
    ParticleEffectConfig,
    ParticleEffectType,
)
from domain.short_video import Rgba
from service.scene import CircleNode, LineNode, Node
from service.timeline import (
    Process,
    all_of,
    ease_in_out_quad,
    ease_out_quart,
    linear,
    tween,
    wait_for,
)

CONTAINER_FADE_SECONDS = 0.1
LINE_MAX_DELAY = 0.3
PARTICLE_MAX_DELAY = 0.5
PARTICLE_MIN_SPEED = 0.8
PARTICLE_SPEED_RANGE = 0.4
WAVE_GAP_SECONDS = 0.2
RING_GAP_SECONDS = 0.3


@dataclass
class LineState:
    node: LineNode
    angle: float
    base_width: float
    is_secondary: bool
    delay: float


@dataclass
class ParticleState:
    node: CircleNode
    angle: float
    end_x: float
    end_y: float
    is_secondary: bool
    delay: float
    speed: float


def polar(angle: float, distance: float) -> tuple[float, float]:
    return (math.cos(angle) * distance, math.sin(angle) * distance)


def fade_out_after(progress: float, threshold: float) -> float:
    """Remaining opacity factor once progress passes threshold."""
    if progress <= threshold:
        return 1.0
    return 1.0 - (progress - threshold) / (1.0 - threshold)


class LineEffect(Node):
    """Lines radiating from the center of the frame."""

    def __init__(
        self, config: LineEffectConfig, rng: random.Random, **kwargs: object
    ) -> None:
        super().__init__(**kwargs)
        self.config = config
        self.rng = rng
        self.container = self.add(Node(opacity=0.0))
        self.lines: list[LineState] = []
        for index in range(config.line_count):
            is_secondary = index % 2 == 0
            base_width = 2.0 + rng.random() * 4.0
            node = LineNode(
                [(0.0, 0.0), (0.0, 0.0)],
                stroke=config.secondary_color if is_secondary else config.color,
                line_width=base_width,
                opacity=0.0,
            )
            self.container.add(node)
            self.lines.append(
                LineState(
                    node=node,
                    angle=index / config.line_count * math.pi * 2.0,
                    base_width=base_width,
                    is_secondary=is_secondary,
                    delay=rng.random() * LINE_MAX_DELAY,
                )
            )

    def show(self) -> Process:
        yield from self.container.animate("opacity", 1.0, CONTAINER_FADE_SECONDS)

    def radial_burst(self, duration: float = 3.0) -> Process:
        """Grow every line outward, then fade it."""
        yield from self.show()
        length = self.config.max_length

        def burst(line: LineState) -> Process:
            end_x, end_y = polar(line.angle, length)

            def update(progress: float) -> None:
                line.node.points = [(0.0, 0.0), (end_x * progress, end_y * progress)]

            yield from wait_for(line.delay)
            yield from all_of(
                line.node.animate("opacity", self.config.opacity, 0.2),
                tween(duration * 0.8, update, ease_out_quart),
            )
            yield from line.node.animate("opacity", 0.0, duration * 0.2)

        yield from all_of(*(burst(line) for line in self.lines))

    def spiral_motion(self, duration: float = 4.0, rotations: float = 2.0) -> Process:
        yield from self.show()
        count = len(self.lines)

        def spiral(index: int, line: LineState) -> Process:
            def update(progress: float) -> None:
                angle = line.angle + progress * rotations * math.pi * 2.0
                distance = progress * self.config.max_length
                line.node.points = [polar(angle, distance * 0.2), polar(angle, distance)]

            yield from wait_for(index / count * 0.8)
            yield from line.node.animate("opacity", self.config.opacity, 0.2)
            yield from tween(duration, update, ease_in_out_quad)
            yield from line.node.animate("opacity", 0.0, 0.3)

        yield from all_of(*(spiral(index, line) for index, line in enumerate(self.lines)))

    def pulse_wave(self, wave_count: int = 3, wave_seconds: float = 1.0) -> Process:
        """Lines stretch and shrink in waves swept around the circle."""
        yield from self.show()
        count = len(self.lines)

        def pulse(index: int, line: LineState) -> Process:
            def update(progress: float) -> None:
                strength = math.sin(progress * math.pi)
                line.node.points = [(0.0, 0.0), polar(line.angle, strength * self.config.max_length)]
                line.node.opacity = self.config.opacity * strength
                line.node.line_width = line.base_width * (1.0 + strength * 0.5)

            yield from wait_for(index / count * 0.5)
            yield from tween(wave_seconds, update)

        for wave in range(wave_count):
            yield from all_of(*(pulse(index, line) for index, line in enumerate(self.lines)))
            if wave < wave_count - 1:
                yield from wait_for(WAVE_GAP_SECONDS)

    def flow_stream(self, duration: float = 3.0) -> Process:
        yield from self.show()
        peak = self.config.opacity * 0.7

        def flow(index: int, line: LineState) -> Process:
            def update(progress: float) -> None:
                line.node.points = [
                    polar(line.angle, progress * self.config.max_length * 0.3),
                    polar(line.angle, progress * self.config.max_length),
                ]
                if progress > 0.7:
                    line.node.opacity = peak * fade_out_after(progress, 0.7)

            yield from wait_for(index // 5 * 0.2)
            yield from all_of(
                line.node.animate("opacity", peak, 0.1),
                tween(duration, update, linear),
            )

        yield from all_of(*(flow(index, line) for index, line in enumerate(self.lines)))

    def color_shift(self, colors: Sequence[Rgba], duration: float = 2.0) -> Process:
        """Step the line colors through a palette."""
        steps = len(colors) - 1
        if steps < 1:
            return
        for step in range(steps):
            yield from all_of(
                *(
                    line.node.animate(
                        "stroke",
                        colors[step + 1] if line.is_secondary else colors[step],
                        duration / steps,
                        linear,
                    )
                    for line in self.lines
                )
            )

    def set_intensity(self, intensity: float, duration: float = 1.0) -> Process:
        yield from all_of(
            *(
                line.node.animate("opacity", self.config.opacity * intensity, duration)
                for line in self.lines
            )
        )

    def stop(self, duration: float = 0.5) -> Process:
        yield from all_of(
            self.container.animate("opacity", 0.0, duration),
            *(line.node.animate("opacity", 0.0, duration) for line in self.lines),
        )

    def remove_effect(self) -> Process:
        yield from self.container.animate("opacity", 0.0, CONTAINER_FADE_SECONDS)
        self.remove()


class ParticleEffect(Node):
    """Small circles scattered from the center of the frame."""

    def __init__(
        self, config: ParticleEffectConfig, rng: random.Random, **kwargs: object
    ) -> None:
        super().__init__(**kwargs)
        self.config = config
        self.rng = rng
        self.intensity = config.intensity
        self.container = self.add(Node(opacity=0.0))
        self.particles: list[ParticleState] = []
        for index in range(config.particle_count):
            angle = index / config.particle_count * math.pi * 2.0 + rng.random() * 0.3
            end_x, end_y = polar(angle, config.max_distance + rng.random() * 200.0)
            is_secondary = index % 3 == 0
            node = CircleNode(
                3.0 + rng.random() * 5.0,
                config.secondary_color if is_secondary else config.color,
                opacity=0.0,
            )
            self.container.add(node)
            self.particles.append(
                ParticleState(
                    node=node,
                    angle=angle,
                    end_x=end_x,
                    end_y=end_y,
                    is_secondary=is_secondary,
                    delay=rng.random() * PARTICLE_MAX_DELAY,
                    speed=PARTICLE_MIN_SPEED + rng.random() * PARTICLE_SPEED_RANGE,
                )
            )

    def show(self, seconds: float = CONTAINER_FADE_SECONDS) -> Process:
        yield from self.container.animate("opacity", 1.0, seconds)

    def explosion(self, duration: float = 2.5) -> Process:
        """Burst every particle outward, fading over the last 40 %."""
        yield from self.show(0.05)
        peak = 0.8 * self.intensity

        def burst(particle: ParticleState) -> Process:
            node = particle.node
            node.scale = 0.1
            node.position = (0.0, 0.0)

            def update(progress: float) -> None:
                node.position = (particle.end_x * progress, particle.end_y * progress)
                if progress > 0.6:
                    node.opacity = peak * fade_out_after(progress, 0.6)
                    node.scale = 1.0 + (progress - 0.6) / 0.4 * 0.5

            yield from all_of(
                node.animate("opacity", peak, 0.1),
                node.animate("scale", 1.0, 0.2),
                tween(duration, update, ease_out_quart),
            )

        yield from all_of(*(burst(particle) for particle in self.particles))

    def vortex(self, duration: float = 4.0, rotations: float = 3.0) -> Process:
        yield from self.show()
        count = len(self.particles)

        def spin(index: int, particle: ParticleState) -> Process:
            node = particle.node

            def update(progress: float) -> None:
                angle = particle.angle + progress * rotations * math.pi * 2.0
                node.position = polar(angle, progress * self.config.max_distance)
                node.scale = 1.0 + math.sin(progress * math.pi * 4.0) * 0.3

            yield from wait_for(index / count)
            yield from node.animate("opacity", 0.7 * self.intensity, 0.1)
            yield from tween(duration, update, ease_in_out_quad)
            yield from node.animate("opacity", 0.0, 0.2)

        yield from all_of(*(spin(index, particle) for index, particle in enumerate(self.particles)))

    def meteor_shower(self, duration: float = 3.0) -> Process:
        """Particles cross the frame from the opposite side."""
        yield from self.show()
        peak = 0.7 * self.intensity
        distance = self.config.max_distance

        def streak(particle: ParticleState) -> Process:
            node = particle.node
            yield from wait_for(particle.delay)
            start_x, start_y = polar(particle.angle + math.pi, distance)
            step_x, step_y = polar(particle.angle, distance * 2.0)

            def update(progress: float) -> None:
                node.position = (start_x + step_x * progress, start_y + step_y * progress)
                node.scale = 1.0 + progress * 0.5
                if progress > 0.7:
                    node.opacity = peak * fade_out_after(progress, 0.7)

            node.position = (start_x, start_y)
            yield from all_of(
                node.animate("opacity", peak, 0.1),
                tween(duration * particle.speed, update, ease_out_quart),
            )

        yield from all_of(*(streak(particle) for particle in self.particles))

    def pulse_rings(self, ring_count: int = 3, ring_seconds: float = 1.5) -> Process:
        """Expand every third particle per ring."""
        yield from self.show()
        peak = 0.6 * self.intensity

        def ring(particle: ParticleState) -> Process:
            node = particle.node
            node.position = (0.0, 0.0)
            node.scale = 0.5

            def update(progress: float) -> None:
                node.position = polar(particle.angle, progress * self.config.max_distance)
                node.scale = 0.5 + progress * 1.5
                if progress > 0.5:
                    node.opacity = peak * fade_out_after(progress, 0.5)

            yield from all_of(
                node.animate("opacity", peak, 0.1),
                tween(ring_seconds, update, ease_out_quart),
            )

        for ring_index in range(ring_count):
            yield from all_of(
                *(
                    ring(particle)
                    for index, particle in enumerate(self.particles)
                    if index % 3 == ring_index % 3
                )
            )
            if ring_index < ring_count - 1:
                yield from wait_for(RING_GAP_SECONDS)

    def swarm(self, duration: float = 4.0) -> Process:
        yield from self.show()

        def fly(index: int, particle: ParticleState) -> Process:
            node = particle.node

            def update(progress: float) -> None:
                center_x = math.sin(progress * math.pi * 2.0) * 200.0
                center_y = math.cos(progress * math.pi * 2.0) * 200.0
                offset_x, offset_y = polar(
                    particle.angle + progress * math.pi * 4.0,
                    50.0 + math.sin(progress * math.pi * 8.0 + index) * 30.0,
                )
                node.position = (center_x + offset_x, center_y + offset_y)
                node.scale = 1.0 + math.sin(progress * math.pi * 6.0 + index * 0.5) * 0.3

            yield from node.animate("opacity", 0.6 * self.intensity, 0.2)
            yield from tween(duration, update, linear)
            yield from node.animate("opacity", 0.0, 0.3)

        yield from all_of(*(fly(index, particle) for index, particle in enumerate(self.particles)))

    def color_transition(self, color: Rgba, duration: float = 1.0) -> Process:
        yield from all_of(
            *(
                particle.node.animate(
                    "fill",
                    self.config.secondary_color if particle.is_secondary else color,
                    duration,
                    linear,
                )
                for particle in self.particles
            )
        )

    def set_intensity(self, intensity: float, duration: float = 1.0) -> Process:
        """Rescale particle opacities relative to the current intensity."""
        ratio = intensity / self.intensity if self.intensity > 0 else 0.0
        yield from all_of(
            *(
                particle.node.animate("opacity", particle.node.opacity * ratio, duration)
                for particle in self.particles
            )
        )
        self.intensity = intensity

    def stop(self, duration: float = 0.5) -> Process:
        yield from self.container.animate("opacity", 0.0, duration)


def fit_seconds(seconds: float, overhead: float, repeats: int = 1) -> float:
    """Core animation time left once fixed fades and staggers are paid for."""
    return max(0.0, seconds - overhead) / repeats


def stagger_ratio(count: int) -> float:
    """Largest index / count over count items."""
    return (count - 1) / count


def play_radial_burst(effect: LineEffect, seconds: float) -> Process:
    return effect.radial_burst(fit_seconds(seconds, CONTAINER_FADE_SECONDS + LINE_MAX_DELAY))


def play_spiral_motion(effect: LineEffect, seconds: float) -> Process:
    # stagger up to 0.8 s, 0.2 s fade in, 0.3 s fade out
    overhead = CONTAINER_FADE_SECONDS + stagger_ratio(len(effect.lines)) * 0.8 + 0.5
    return effect.spiral_motion(fit_seconds(seconds, overhead))


def play_pulse_wave(effect: LineEffect, seconds: float, wave_count: int = 3) -> Process:
    """Split the time into waves, each staggered by up to 0.5 s."""
    overhead = (
        CONTAINER_FADE_SECONDS
        + wave_count * stagger_ratio(len(effect.lines)) * 0.5
        + (wave_count - 1) * WAVE_GAP_SECONDS
    )
    return effect.pulse_wave(
        wave_count=wave_count, wave_seconds=fit_seconds(seconds, overhead, wave_count)
    )


def play_flow_stream(effect: LineEffect, seconds: float) -> Process:
    # lines start in groups of five, 0.2 s apart
    overhead = CONTAINER_FADE_SECONDS + (len(effect.lines) - 1) // 5 * 0.2
    return effect.flow_stream(fit_seconds(seconds, overhead))


def play_explosion(effect: ParticleEffect, seconds: float) -> Process:
    return effect.explosion(fit_seconds(seconds, 0.05))


def play_vortex(effect: ParticleEffect, seconds: float) -> Process:
    # stagger up to 1 s, 0.1 s fade in, 0.2 s fade out
    overhead = CONTAINER_FADE_SECONDS + stagger_ratio(len(effect.particles)) + 0.3
    return effect.vortex(fit_seconds(seconds, overhead))


def play_meteor_shower(effect: ParticleEffect, seconds: float) -> Process:
    """The fastest-scaled streak must land inside seconds."""
    return effect.meteor_shower(
        fit_seconds(seconds, CONTAINER_FADE_SECONDS + PARTICLE_MAX_DELAY)
        / (PARTICLE_MIN_SPEED + PARTICLE_SPEED_RANGE)
    )


def play_pulse_rings(effect: ParticleEffect, seconds: float, ring_count: int = 3) -> Process:
    overhead = CONTAINER_FADE_SECONDS + (ring_count - 1) * RING_GAP_SECONDS
    return effect.pulse_rings(
        ring_count=ring_count, ring_seconds=fit_seconds(seconds, overhead, ring_count)
    )


def play_swarm(effect: ParticleEffect, seconds: float) -> Process:
    return effect.swarm(fit_seconds(seconds, CONTAINER_FADE_SECONDS + 0.5))


LINE_EFFECT_HANDLERS: dict[LineEffectType, Callable[[LineEffect, float], Process]] = {
    LineEffectType.RADIAL_BURST: play_radial_burst,
    LineEffectType.SPIRAL_MOTION: play_spiral_motion,
    LineEffectType.PULSE_WAVE: play_pulse_wave,
    LineEffectType.FLOW_STREAM: play_flow_stream,
}

PARTICLE_EFFECT_HANDLERS: dict[
    ParticleEffectType, Callable[[ParticleEffect, float], Process]
] = {
    ParticleEffectType.EXPLOSION: play_explosion,
    ParticleEffectType.VORTEX: play_vortex,
    ParticleEffectType.METEOR_SHOWER: play_meteor_shower,
    ParticleEffectType.PULSE_RINGS: play_pulse_rings,
    ParticleEffectType.SWARM: play_swarm,
}
