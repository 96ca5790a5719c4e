from utils.logger import setup_logging, log_debug, log_info, log_success, log_warning, log_error

__all__ = ["setup_logging", "log_debug", "log_info", "log_success", "log_warning", "log_error"]
