"""Basic smoke tests to verify imports work correctly."""


def test_core_imports():
    """Test that core modules can be imported."""
    from src.core.archiver import Archiver, Server
    from src.core.compression import TarGzCompressor
    from src.core.config_manager import ConfigManager
    from src.core.filesystem import MetadataProvider, PathResolver

    assert Archiver is not None
    assert Server is not None
    assert TarGzCompressor is not None
    assert ConfigManager is not None
    assert MetadataProvider is not None
    assert PathResolver is not None


def test_utils_imports():
    """Test that utility modules can be imported."""
    from src.utils.log_setup import setup_logging
    from src.utils.notifications import NotificationManager

    assert setup_logging is not None
    assert NotificationManager is not None
