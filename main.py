# main.py

import logging
import time

import pygame

import constants
import logger_setup
from config_loader import load_config, make_rng
from contour import ContourSynthesizer
from frame_worker import FrameWorker
from noise_field import NoiseField
from renderer import Renderer
from splatter_system import SplatterSystem

# Get the application's dedicated logger
logger = logging.getLogger(constants.LOGGER_NAME)


def run_event_loop(system, worker, renderer, clock):
    """
    The interactive loop: clicks trigger impacts, frames are synthesized on
    the worker thread and drawn once they are ready.
    """
    running = True
    tick = 0
    started = time.perf_counter()
    pending = worker.submit(system.current_particles(), 0.0)
    frame = None

    while running:
        # Event handling
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                report = system.on_impact(event.pos)
                logger.info(
                    f"Impact simulated in {report.steps} steps, "
                    f"{report.particle_count} particle(s) on screen."
                )
            elif event.type == pygame.KEYDOWN and event.key == pygame.K_c:
                system.clear()

        # --- Swap in the newest finished frame, then request the next one ---
        if pending.done():
            frame = pending.result()
            pending = worker.submit(system.current_particles(), time.perf_counter() - started)

        # --- Drawing ---
        if frame is not None:
            renderer.draw(frame)
            pygame.display.flip()

        # --- Logging (throttled) ---
        if tick % 600 == 0 and frame is not None:
            logger.debug(f"Tick={tick}, FPS={clock.get_fps():.1f}, Particles={len(frame.particles)}")

        clock.tick(constants.FPS)
        tick += 1


def main():
    """
    Main function to initialize and run the splatter simulation.
    """
    # --- Setup ---
    config = load_config('config.json')
    logger_setup.setup_logging(config)

    logger.info("Application starting...")
    logger.info(f"Loaded configuration: {config}")

    # Initialize the master random number generator (RNG)
    rng = make_rng(config)
    noise_field = NoiseField(config.get('noise_seed', 0))
    synthesizer = ContourSynthesizer(noise_field, wobble_rate=config.get('wobble_rate', 0.0))

    system = SplatterSystem(
        config=config['simulation'],
        rng=rng,
        noise_field=noise_field,
        synthesizer=synthesizer,
    )

    # --- Initialization ---
    pygame.init()
    screen = pygame.display.set_mode((constants.WIDTH, constants.HEIGHT))
    pygame.display.set_caption(constants.TITLE)
    clock = pygame.time.Clock()
    renderer = Renderer(screen)

    with FrameWorker(synthesizer) as worker:
        run_event_loop(system, worker, renderer, clock)

    logger.info("Application shutting down.")
    pygame.quit()


if __name__ == "__main__":
    main()
