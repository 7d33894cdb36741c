"""
Test suite for the global configuration.

Tests cover:
- Default values and reset()
- temp_config() restoration, including on error
- Rejection of unknown attributes
"""

import pytest
import kinema
from kinema import config, temp_config


class TestConfig:
    """Test the configuration object."""

    def test_defaults(self):
        assert config.STRICT_VALIDATION is True
        assert config.ADAPTIVE_METHOD == 'DOP853'
        assert config.NEWHALL_MIN_DEGREE <= config.NEWHALL_MAX_DEGREE

    def test_reset(self):
        config.MAX_PIECE_DIVISIONS = 4
        config.ADAPTIVE_METHOD = 'RK45'
        config.reset()
        assert config.MAX_PIECE_DIVISIONS == 8
        assert config.ADAPTIVE_METHOD == 'DOP853'

    def test_repr(self):
        text = repr(config)
        assert text.startswith("KinemaConfig:")
        assert "NEWHALL_MAX_DEGREE" in text
        assert "STRICT_VALIDATION" in text

    def test_shared_instance(self):
        assert kinema.config is config


class TestTempConfig:
    """Test the temp_config() context manager."""

    def test_restores_values(self):
        with temp_config(STRICT_VALIDATION=False, NEWHALL_MAX_DEGREE=9) as active:
            assert active is config
            assert config.STRICT_VALIDATION is False
            assert config.NEWHALL_MAX_DEGREE == 9
        assert config.STRICT_VALIDATION is True
        assert config.NEWHALL_MAX_DEGREE == 17

    def test_restores_after_exception(self):
        with pytest.raises(RuntimeError):
            with temp_config(ADAPTIVE_RTOL=1e-6):
                raise RuntimeError("boom")
        assert config.ADAPTIVE_RTOL == 1e-12

    def test_unknown_attribute(self):
        with pytest.raises(AttributeError, match="no attribute"):
            with temp_config(NOT_A_SETTING=1):
                pass

    def test_adaptive_method_from_config(self):
        with temp_config(ADAPTIVE_METHOD='RK23'):
            assert kinema.AdaptiveStepIntegrator().method == 'RK23'
