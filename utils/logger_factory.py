import logging
import os

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


class SafeLabelFormatter(logging.Formatter):
    def format(self, record):
        if not hasattr(record, 'label'):
            record.label = '-'
        return super().format(record)


class LabelLoggerAdapter(logging.LoggerAdapter):
    def __init__(self, logger, label):
        super().__init__(logger, {'label': label})

    def process(self, msg, kwargs):
        # Formatter already carries the module; only the label is prepended
        return f"{self.extra['label']}: {msg}", kwargs


def new_logger(label, module_name=None):
    """
    Return a labelled logger for the calling module.

    Each module logger gets a single stream handler; the label identifies the
    function or operation emitting the record, e.g. ``new_logger("record_view")``.
    """
    if module_name is None:
        import inspect
        frame = inspect.currentframe()
        try:
            module_name = frame.f_back.f_globals['__name__']
        finally:
            del frame
    logger = logging.getLogger(module_name)
    logger.propagate = False

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = SafeLabelFormatter(
            fmt='%(asctime)s %(levelname)s %(module)s %(label)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    return LabelLoggerAdapter(logger, label)
