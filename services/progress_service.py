"""Checkpointing for resumable describe passes."""
import json
import logging
import os
from typing import Optional

from config import PROGRESS_FILE
from models import ProgressState

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Service persisting a single resume checkpoint inside an output directory."""

    def __init__(self, output_dir: str):
        """
        Initialize the tracker.

        Args:
            output_dir: Directory holding the checkpoint file
        """
        self.output_dir = output_dir
        self.progress_path = os.path.join(output_dir, PROGRESS_FILE)

    def save(self, state: ProgressState) -> None:
        """Overwrite the checkpoint with the given state."""
        os.makedirs(self.output_dir, exist_ok=True)
        tmp_path = f"{self.progress_path}.tmp"
        with open(tmp_path, 'w', encoding='utf-8') as file:
            json.dump(state, file, indent=2)
        os.replace(tmp_path, self.progress_path)
        logger.debug(
            f"Checkpoint saved at index {state['lastProcessedIndex']} ({state['lastProcessedObject']})"
        )

    def load(self) -> Optional[ProgressState]:
        """
        Load the checkpoint.

        Returns:
            The saved state, or None when there is none or it cannot be parsed
        """
        if not os.path.isfile(self.progress_path):
            return None

        try:
            with open(self.progress_path, 'r', encoding='utf-8') as file:
                state = json.load(file)
            int(state['lastProcessedIndex'])
            return state
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Failed to load progress from {self.progress_path}: {e}")
            return None

    def clear(self) -> None:
        """Remove the checkpoint if there is one."""
        if os.path.isfile(self.progress_path):
            os.remove(self.progress_path)
            logger.debug(f"Checkpoint cleared: {self.progress_path}")

    def should_resume(self) -> bool:
        """True when a usable checkpoint exists."""
        return self.load() is not None
