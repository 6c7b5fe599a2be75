"""Tests for kiln._errors."""

from pathlib import Path

from kiln._errors import ConfigError, KilnError, PipelineError, ReloadError


class TestErrorHierarchy:
    """All kiln errors inherit from KilnError."""

    def test_kiln_error_is_exception(self) -> None:
        assert issubclass(KilnError, Exception)

    def test_config_error_inherits(self) -> None:
        assert issubclass(ConfigError, KilnError)

    def test_pipeline_error_inherits(self) -> None:
        assert issubclass(PipelineError, KilnError)

    def test_reload_error_inherits(self) -> None:
        assert issubclass(ReloadError, KilnError)

    def test_catch_all_kiln_errors(self) -> None:
        """All specific errors are catchable via KilnError."""
        errors = (
            ConfigError("test"),
            ReloadError("test"),
            PipelineError("test", asset="styles", stage="sass"),
        )
        for error in errors:
            try:
                raise error
            except KilnError:
                pass  # Expected: all caught by base class


class TestPipelineError:
    """PipelineError carries where the failure happened."""

    def test_attributes(self) -> None:
        err = PipelineError("bad", asset="styles", stage="sass", path=Path("/p/main.scss"))
        assert str(err) == "bad"
        assert err.asset == "styles"
        assert err.stage == "sass"
        assert err.path == Path("/p/main.scss")

    def test_location_with_path(self) -> None:
        err = PipelineError("bad", asset="styles", stage="sass", path=Path("/p/main.scss"))
        assert err.location == "styles/sass (main.scss)"

    def test_location_without_path(self) -> None:
        err = PipelineError("bad", asset="images", stage="imagemin")
        assert err.location == "images/imagemin"
