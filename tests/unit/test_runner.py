import copy

from uvicorn.config import LOGGING_CONFIG

from aidfusion.web.runner import ACCESS_LOG_FORMAT, DEFAULT_LOG_FORMAT, build_log_config


def test_log_config_uses_our_formats():
    """Access and default formatters carry the service's formats."""
    log_config = build_log_config()
    assert log_config["formatters"]["access"]["fmt"] == ACCESS_LOG_FORMAT
    assert log_config["formatters"]["default"]["fmt"] == DEFAULT_LOG_FORMAT


def test_uvicorn_defaults_stay_untouched():
    """Building the config leaves uvicorn's module-level default as it was."""
    before = copy.deepcopy(LOGGING_CONFIG)
    build_log_config()
    assert LOGGING_CONFIG == before
    assert LOGGING_CONFIG["formatters"]["access"]["fmt"] != ACCESS_LOG_FORMAT
