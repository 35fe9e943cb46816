"""
Pipeline configuration
"""
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pipeline settings, read from the environment or ``.env``."""

    # Layout
    PROJECT_ROOT: Path = Path(".")
    BUILD_DIR: str = "build"
    INTEL_LIB_VERSION: str = "IntelRDFPMathLib20U2"
    OUTPUT_LIB: str = "gcc111libdecimal_pico2.a"
    REPORT_DIR: Optional[Path] = None

    # Annotation + verification phases (off by default)
    VERIFY_CONST: bool = False
    # Also tag arrays that were already static const upstream
    ANNOTATE_EXISTING_CONST: bool = False

    # Toolchain
    TOOLCHAIN_PREFIX: str = "arm-none-eabi-"
    SECTION_BACKEND: Literal["elftools", "readelf"] = "elftools"

    # Timeouts
    BUILD_TIMEOUT: int = 1800  # seconds
    TOOL_TIMEOUT: int = 60  # seconds

    @property
    def source_root(self) -> Path:
        """Pristine upstream tree, as extracted by the operator."""
        return self.PROJECT_ROOT / self.INTEL_LIB_VERSION

    @property
    def build_root(self) -> Path:
        return self.PROJECT_ROOT / self.BUILD_DIR

    @property
    def library_dir(self) -> Path:
        """Directory the upstream makefile runs in, inside the build copy."""
        return self.build_root / self.INTEL_LIB_VERSION / "LIBRARY"

    @property
    def output_lib_path(self) -> Path:
        return self.PROJECT_ROOT / self.OUTPUT_LIB

    def tool(self, name: str) -> str:
        """Prefixed toolchain program name, e.g. ``arm-none-eabi-ar``."""
        return f"{self.TOOLCHAIN_PREFIX}{name}"

    class Config:
        env_file = ".env"
        case_sensitive = True
