import os

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine settings, loaded from environment variables."""

    # Supported file extensions
    raw_extensions: set[str] = {
        ".cr2", ".cr3", ".crw", ".nef", ".nrw", ".arw", ".srf", ".sr2",
        ".dng", ".raf", ".orf", ".rw2", ".pef", ".srw", ".3fr", ".iiq",
        ".rwl", ".x3f", ".erf", ".kdc", ".mrw", ".mos",
    }
    jpeg_extensions: set[str] = {".jpg", ".jpeg", ".jpe", ".jfif"}

    # Pairing tie-break, most preferred first. Extensions not listed rank last.
    raw_priority: list[str] = [
        ".cr3", ".cr2", ".nef", ".arw", ".raf", ".orf", ".rw2", ".pef",
        ".srw", ".dng",
    ]
    jpeg_priority: list[str] = [".jpg", ".jpeg", ".jpe", ".jfif"]

    # Thumbnails
    thumbnail_size: int = 256  # long edge, pixels
    thumbnail_min_embedded: int = 160
    thumbnail_quality: int = 80

    # Processing
    workers: int = 0  # 0 = one per CPU core
    progress_every: int = 1
    progress_queue_size: int = 256

    # Discovery
    follow_symlinks: bool = True
    skip_hidden: bool = True

    # Log level
    log_level: str = "info"

    model_config = {"env_prefix": "HOLOGRAM_", "case_sensitive": False}

    @property
    def worker_count(self) -> int:
        if self.workers > 0:
            return self.workers
        return os.cpu_count() or 1


settings = Settings()
