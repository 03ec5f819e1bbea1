"""
Tests for the sampling helpers.
"""

import logging
import warnings

from flavordiet.utils import quiet_sampling, silence_library_loggers


class TestQuietSampling:
    def test_collects_warnings(self):
        with quiet_sampling() as collected:
            warnings.warn("chain 2 reached max treedepth", UserWarning)
            warnings.warn("chain 2 reached max treedepth", UserWarning)
        assert collected == ["UserWarning: chain 2 reached max treedepth"]

    def test_restores_logger_levels(self):
        logger = logging.getLogger("pymc")
        logger.setLevel(logging.INFO)
        with quiet_sampling():
            assert logger.level == logging.WARNING
        assert logger.level == logging.INFO

    def test_appends_to_given_list(self):
        existing = ["RuntimeWarning: earlier"]
        with quiet_sampling(existing):
            warnings.warn("later", RuntimeWarning)
        assert existing == ["RuntimeWarning: earlier", "RuntimeWarning: later"]

    def test_silence_library_loggers(self):
        silence_library_loggers(logging.CRITICAL)
        assert logging.getLogger("pytensor").level == logging.CRITICAL
        silence_library_loggers()
        assert logging.getLogger("pytensor").level == logging.WARNING

    def test_collects_library_log_records(self, capsys):
        with quiet_sampling() as collected:
            logging.getLogger("pymc.sampling.mcmc").warning(
                "Chain 0 reached the maximum tree depth."
            )
            logging.getLogger("pymc").info("Sampling 4 chains for 1_000 tune")
        assert collected == ["pymc.sampling.mcmc: Chain 0 reached the maximum tree depth."]
        assert capsys.readouterr().err == ""

    def test_restores_handlers(self):
        logger = logging.getLogger("pymc")
        handlers, propagate = logger.handlers[:], logger.propagate
        with quiet_sampling():
            assert not logger.propagate
        assert logger.handlers == handlers
        assert logger.propagate == propagate
