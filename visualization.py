"""Animation of the particle cloud chasing the true state."""

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation

from filter_errors import InvalidArgumentError


class ParticleAnimation:
    """Collects one frame per iteration and exports them as a GIF.

    A frame holds the (N, 2) particle positions, the true 2D position and,
    optionally, the estimated 2D position.
    """

    def __init__(self, position_index=(0, 1), padding=1.0, title="Particle Filter Control"):
        self.position_index = list(position_index)
        self.padding = padding
        self.title = title
        self.frames = []

    def __len__(self):
        return len(self.frames)

    def add_frame(self, particles_xy, true_xy, estimate_xy=None):
        particles_xy = np.array(particles_xy, dtype=float)
        if particles_xy.ndim != 2 or particles_xy.shape[1] != 2:
            raise InvalidArgumentError(
                f"particle positions must have shape (N, 2), got {particles_xy.shape}"
            )
        true_xy = np.array(true_xy, dtype=float).reshape(2)
        if estimate_xy is not None:
            estimate_xy = np.array(estimate_xy, dtype=float).reshape(2)
        self.frames.append((particles_xy, true_xy, estimate_xy))

    def record(self, step_record):
        """Add a frame from a control loop StepRecord."""
        belief = step_record.belief
        self.add_frame(
            belief.particles()[:, self.position_index],
            step_record.true_state[self.position_index],
            belief.mean()[self.position_index],
        )

    def _limits(self):
        points = [p for particles, _, _ in self.frames for p in (particles.min(axis=0), particles.max(axis=0))]
        points += [true_xy for _, true_xy, _ in self.frames]
        points = np.array(points)

        # Square view window centred on everything drawn
        lo, hi = points.min(axis=0), points.max(axis=0)
        center = (lo + hi) / 2
        half = (hi - lo).max() / 2 + self.padding
        return center - half, center + half

    def animate(self, interval=100):
        """Build the matplotlib animation; returns (figure, animation)."""
        if not self.frames:
            raise InvalidArgumentError("no frames recorded")

        fig, ax = plt.subplots(figsize=(6, 6))
        lo, hi = self._limits()
        ax.set_xlim(lo[0], hi[0])
        ax.set_ylim(lo[1], hi[1])
        ax.set_xlabel('X position')
        ax.set_ylabel('Y position')
        ax.grid(True)

        particles_scatter = ax.scatter([], [], c='g', s=4, alpha=0.2, label='Particles')
        true_scatter = ax.scatter([], [], c='r', marker='o', label='True state')
        estimate_scatter = ax.scatter([], [], c='b', marker='x', label='Belief mean')
        true_line, = ax.plot([], [], 'r-', alpha=0.4)
        ax.legend(loc='upper right')

        trail = np.array([true_xy for _, true_xy, _ in self.frames])
        n_frames = len(self.frames)

        def init():
            particles_scatter.set_offsets(np.empty((0, 2)))
            true_scatter.set_offsets(np.empty((0, 2)))
            estimate_scatter.set_offsets(np.empty((0, 2)))
            true_line.set_data([], [])
            return particles_scatter, true_scatter, estimate_scatter, true_line

        def update(frame):
            particles, true_xy, estimate_xy = self.frames[frame]
            particles_scatter.set_offsets(particles)
            true_scatter.set_offsets(true_xy.reshape(1, -1))
            if estimate_xy is not None:
                estimate_scatter.set_offsets(estimate_xy.reshape(1, -1))
            true_line.set_data(trail[:frame + 1, 0], trail[:frame + 1, 1])
            ax.set_title(f'{self.title} (Step {frame + 1}/{n_frames})')
            return particles_scatter, true_scatter, estimate_scatter, true_line

        anim = FuncAnimation(fig, update, init_func=init, frames=n_frames,
                             interval=interval, blit=False)
        return fig, anim

    def save(self, path, fps=10):
        """Write the recorded frames to a GIF at `fps` frames per second."""
        fig, anim = self.animate(interval=1000 / fps)
        try:
            anim.save(path, writer='pillow', fps=fps)
        finally:
            plt.close(fig)
        return path
