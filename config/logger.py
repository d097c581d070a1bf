"""Logging configuration."""
from loguru import logger
import asyncio
import os
import signal
import sys
import threading
from .settings import settings


def setup_logger():
    """Configure application logging."""
    logger.remove()  # Remove default handler
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.log_level,
    )
    logger.add(
        "logs/app.log",
        rotation="10 MB",
        retention="10 days",
        level=settings.log_level,
        serialize=settings.is_production,
    )
    return logger


def install_crash_handlers():
    """
    Treat any exception escaping a request as a process-fatal bug.

    Uncaught exceptions in the main thread or worker threads are logged at
    CRITICAL with their traceback and the process exits.
    """
    def _excepthook(exc_type, exc_value, exc_tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        logger.opt(exception=(exc_type, exc_value, exc_tb)).critical(
            "Uncaught exception, terminating process"
        )
        sys.exit(1)

    def _thread_excepthook(args):
        logger.opt(exception=(args.exc_type, args.exc_value, args.exc_traceback)).critical(
            f"Uncaught exception in thread {args.thread.name if args.thread else '?'}, terminating process"
        )
        os._exit(1)

    sys.excepthook = _excepthook
    threading.excepthook = _thread_excepthook


def install_asyncio_crash_handler(loop: asyncio.AbstractEventLoop):
    """Log unhandled asyncio errors as crashes and request a graceful shutdown."""
    def _handler(loop, context):
        exc = context.get("exception")
        message = context.get("message", "Unhandled asyncio error")
        logger.opt(exception=exc).critical(f"{message}, shutting down")
        os.kill(os.getpid(), signal.SIGTERM)

    loop.set_exception_handler(_handler)


# Initialize logger
setup_logger()
