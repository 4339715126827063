# frame_worker.py

import logging
from collections import namedtuple
from concurrent.futures import Future, ThreadPoolExecutor

from constants import LOGGER_NAME
from contour import ContourSynthesizer

logger = logging.getLogger(LOGGER_NAME)

# An immutable, fully synthesized frame: the particle snapshot it was built
# from, one RenderHints per particle (same order) and the wobble time used.
Frame = namedtuple('Frame', ['particles', 'hints', 'time'])


def build_frame(synthesizer: ContourSynthesizer, particles: tuple, time: float = 0.0) -> Frame:
    particles = tuple(particles)
    hints = tuple(synthesizer.render_hints(p, time) for p in particles)
    return Frame(particles=particles, hints=hints, time=time)


class FrameWorker:
    """
    Builds render frames off the main thread.

    Only immutable Particle snapshots are submitted, never the live store, so
    the simulation and the worker share no mutable state and need no locks.

    Data Contract:
    - Inputs: synthesizer (ContourSynthesizer), max_workers (int).
    - Outputs: submit() returns a Future resolving to a Frame.
    - Side Effects: Owns a thread pool until close().
    """
    def __init__(self, synthesizer: ContourSynthesizer, max_workers: int = 1):
        self.synthesizer = synthesizer
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="frame-worker")
        self._closed = False
        logger.info(f"FrameWorker started with {max_workers} worker thread(s).")

    def submit(self, particles: tuple, time: float = 0.0) -> Future:
        if self._closed:
            raise RuntimeError("FrameWorker has been closed.")
        # Freeze the sequence before it leaves this thread.
        return self._executor.submit(build_frame, self.synthesizer, tuple(particles), time)

    def close(self, wait: bool = True):
        if not self._closed:
            self._closed = True
            self._executor.shutdown(wait=wait)
            logger.info("FrameWorker stopped.")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
