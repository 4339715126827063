# logger_setup.py

import logging
import os

from constants import LOGGER_NAME


def setup_logging(config: dict, runs_dir: str = 'runs'):
    """
    Sets up logging for the application.

    Reads the logging section of an already-loaded configuration, creates a
    run-specific log directory, and configures a dedicated application logger
    (not the root logger) to output to both the console and a log file. This
    keeps verbose logs from third-party libraries like Numba and Pygame out of
    the simulation log.

    Data Contract:
    - Inputs:
        - config (dict) - The full configuration, with 'run_id' and a
          'logging' dictionary holding 'level' and 'format'.
        - runs_dir (str) - Parent directory for per-run log folders.
    - Outputs: The configured logger.
    - Side Effects:
        - Configures the "splatter_sim" logger.
        - Creates directories for log files.
    - Invariants: Calling it twice never duplicates handlers.
    """
    run_id = config.get('run_id', 'default')
    log_config = config.get('logging', {})

    # --- Get a dedicated logger for the application ---
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_config.get('level', 'INFO'))

    # --- Prevent logs from propagating to the root logger ---
    logger.propagate = False

    # --- Create directories for logs ---
    log_dir = os.path.join(runs_dir, run_id)
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, 'simulation.log')

    # --- Create formatter and handlers ---
    formatter = logging.Formatter(
        log_config.get('format', '%(asctime)s - %(levelname)s - %(message)s')
    )

    # File handler
    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(formatter)

    # Console handler
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)

    # --- Add handlers to the logger ---
    # Clear existing handlers to avoid duplication if this function is called again
    if logger.hasHandlers():
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()
    logger.addHandler(file_handler)
    logger.addHandler(stream_handler)

    logger.info(f"Logging initialized. Run ID: {run_id}. Log file: {log_file}")
    return logger
