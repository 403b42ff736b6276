from .shutdown import clear_stop, install_signal_handlers, request_stop, stop_requested

__all__ = ["clear_stop", "install_signal_handlers", "request_stop", "stop_requested"]
