from .sampling import (
    quiet_sampling,
    setup_plotting_backend,
    silence_library_loggers,
)

__all__ = [
    "quiet_sampling",
    "setup_plotting_backend",
    "silence_library_loggers",
]
