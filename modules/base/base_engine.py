import abc
import logging
from pathlib import Path
from typing import Any, Optional

class BaseEngine(abc.ABC):
    """
    Abstract base class for all processing engines.

    Provides common functionality for:
    - Settings and logger attachment.
    - Standardized output directory management with sequential numbering.
    """

    def __init__(self, settings: Any, logger: logging.Logger):
        self.settings = settings
        self.logger = logger
        base_dir = getattr(settings, 'output_dir', None)
        self.base_dir: Optional[Path] = Path(base_dir) if base_dir is not None else None
        self.engine_dir_name = self._get_engine_directory_name()

        # Engines without an output directory run compute-only
        self.output_dir: Optional[Path] = (
            self.base_dir / self.engine_dir_name if self.base_dir is not None else None
        )

        self._setup_directories()

    @abc.abstractmethod
    def _get_engine_directory_name(self) -> str:
        """
        Determines the directory name for the engine's output.
        e.g., '02_StochasticSearch', '03_SearchAnalysis'
        This should be implemented by subclasses.
        """
        raise NotImplementedError("Subclasses must implement _get_engine_directory_name.")

    def _setup_directories(self):
        """
        Creates the main output directory for the engine.
        """
        if self.output_dir is None:
            return

        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.logger.info(f"Output directory for {self.__class__.__name__}: {self.output_dir}")

    @abc.abstractmethod
    def execute(self, *args, **kwargs) -> Any:
        """
        Main execution method for the engine.
        This must be implemented by all subclasses.
        """
        pass
