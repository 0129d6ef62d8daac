import logging

import pytest

from heatbed_sim.utils import logger as logger_module
from heatbed_sim.utils.logger import (
    BedSimFormatter,
    PerformanceTracker,
    get_logger,
    initialize_logger,
    log_section,
    timed_function,
)


@pytest.fixture
def fresh_logger():
    logger = initialize_logger()
    yield logger
    logger_module._logger = None


def test_get_logger_is_shared(fresh_logger):
    assert get_logger() is fresh_logger
    assert get_logger() is get_logger()


def test_file_logging(tmp_path, fresh_logger):
    logger = initialize_logger(log_dir=str(tmp_path), enable_file_logging=True)
    logger.warning("plate too thin")
    for handler in logger.logger.handlers:
        handler.flush()

    assert logger.current_log_file is not None
    text = open(logger.current_log_file, encoding='utf-8').read()
    assert "WARNING" in text
    assert "plate too thin" in text
    for handler in list(logger.logger.handlers):
        handler.close()


def test_console_level_leaves_file_handler(tmp_path, fresh_logger):
    logger = initialize_logger(log_dir=str(tmp_path), enable_file_logging=True)
    logger.set_console_level(logging.ERROR)
    levels = {type(h): h.level for h in logger.logger.handlers}
    assert levels[logging.StreamHandler] == logging.ERROR
    assert levels[logging.FileHandler] == logging.DEBUG
    for handler in list(logger.logger.handlers):
        handler.close()


def test_formatter_without_colours():
    formatter = BedSimFormatter(use_colors=False)
    record = logging.LogRecord('heatbed_sim', logging.INFO, __file__, 10, 'grid ready', None, None)
    text = formatter.format(record)
    assert 'INFO' in text
    assert text.endswith('grid ready')
    assert '\033[' not in text


class TestPerformanceTracker:
    def test_stats(self):
        tracker = PerformanceTracker()
        tracker.record_timing('tick', 0.5)
        tracker.record_timing('tick', 1.5)
        stats = tracker.get_stats('tick')
        assert stats['count'] == 2
        assert stats['mean'] == pytest.approx(1.0)
        assert stats['max'] == 1.5

    def test_unknown_operation(self):
        assert PerformanceTracker().get_stats('nothing')['count'] == 0


def test_timed_function_records(fresh_logger):
    @timed_function("double_it")
    def double(x):
        return 2 * x

    assert double(4) == 8
    assert fresh_logger.performance.get_stats('double_it')['count'] == 1


def test_timed_function_reraises(fresh_logger, caplog):
    @timed_function()
    def broken():
        raise RuntimeError("boom")

    with caplog.at_level(logging.ERROR, logger='heatbed_sim'):
        with pytest.raises(RuntimeError):
            broken()
    assert "broken failed" in caplog.text


def test_log_section(fresh_logger, caplog):
    with caplog.at_level(logging.INFO, logger='heatbed_sim'):
        with log_section("Warm up"):
            pass
    assert "--- Warm up ---" in caplog.text
    assert "Warm up completed" in caplog.text


def test_simulation_lifecycle(fresh_logger, caplog):
    with caplog.at_level(logging.INFO, logger='heatbed_sim'):
        fresh_logger.start_simulation("bed_test", {"target": "60.0°C"})
        fresh_logger.end_simulation(True, "done")
    assert "SIMULATION STARTED: bed_test" in caplog.text
    assert "target: 60.0°C" in caplog.text
    assert "SIMULATION COMPLETED: bed_test" in caplog.text
    assert fresh_logger.simulation_id is None
