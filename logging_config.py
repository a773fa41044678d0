import logging

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# モジュールごとのログレベル
MODULE_LEVELS = {
    'conversion_tracker.core.lifecycle': logging.INFO,
    'conversion_tracker.core.notifications': logging.INFO,
    'conversion_tracker.services.cleanup': logging.INFO,
    'conversion_tracker.services.converter': logging.DEBUG,
}


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once with the project format."""
    root_level = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=root_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT
    )
    for name, module_level in MODULE_LEVELS.items():
        logging.getLogger(name).setLevel(module_level)
